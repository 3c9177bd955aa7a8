from midindex.io.cli import main

main()
