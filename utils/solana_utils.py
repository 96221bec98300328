"""
Small Solana helpers shared by controllers and services.
"""

from __future__ import annotations

from solders.pubkey import Pubkey

LAMPORTS_PER_SOL = 1_000_000_000
ADDRESS_LENGTH = 44
SOLSCAN_TX_URL = "https://solscan.io/tx/{}"


def is_valid_token_address(text: str) -> bool:
    """True si ``text`` tiene 44 caracteres y es una public key base58 válida."""
    if not text or len(text) != ADDRESS_LENGTH:
        return False
    try:
        Pubkey.from_string(text)
    except ValueError:
        return False
    return True


def sol_to_lamports(amount_sol: float) -> int:
    return int(round(amount_sol * LAMPORTS_PER_SOL))


def solscan_tx(signature: str) -> str:
    return SOLSCAN_TX_URL.format(signature)
