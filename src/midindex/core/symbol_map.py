from __future__ import annotations
from typing import Tuple

# Kraken legacy asset codes. Extend as you see more.
XMAP = {
    "XBT/USDT": "BTC/USDT",
    "XBT/USD": "BTC/USD",
    "XDG/USDT": "DOGE/USDT",
    "XBT": "BTC",
    "XDG": "DOGE",
}
RMAP = {v: k for k, v in XMAP.items() if "/" not in k}

# longest first so USDT wins over USD
QUOTES = ("USDT", "USDC", "FDUSD", "BUSD", "TUSD", "USD", "EUR", "GBP", "AUD", "JPY", "BTC", "ETH")


def unify_symbol(sym: str) -> str:
    return XMAP.get(sym, sym)

def normalize_pair(pair: str) -> str:
    """'btc/usdt', 'BTC-USDT', 'btcusdt' -> 'BTCUSDT'."""
    return pair.strip().upper().replace("/", "").replace("-", "").replace("_", "")

def split_pair(pair: str) -> Tuple[str, str]:
    p = normalize_pair(pair)
    for q in sorted(QUOTES, key=len, reverse=True):
        if p.endswith(q) and len(p) > len(q):
            return p[: -len(q)], q
    raise ValueError(f"cannot split pair '{pair}' into base/quote")

def to_kraken(pair: str) -> str:
    base, quote = split_pair(pair)
    return f"{RMAP.get(base, base)}/{RMAP.get(quote, quote)}"

def from_kraken(sym: str) -> str:
    sym = unify_symbol(sym.upper())
    if "/" in sym:
        base, quote = sym.split("/", 1)
        return normalize_pair(unify_symbol(base) + unify_symbol(quote))
    return normalize_pair(sym)
