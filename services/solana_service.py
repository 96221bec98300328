from __future__ import annotations
from typing import Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import TokenAccountOpts
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from utils.errors import GatewayError
from utils.logger import logger_manager, log_function, mask_secrets
from utils.solana_utils import sol_to_lamports

logger = logger_manager.setup_logger(__name__)

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"


class SolanaService:
    """
    Acceso directo al ledger:
      - transfer(): firma localmente una transferencia de SOL (comisión)
        desde el wallet custodial y espera confirmación.
      - get_token_balance(): saldo SPL de un wallet para un mint.
    """
    def __init__(self, rpc_url: Optional[str] = None, client: Optional[Client] = None) -> None:
        self.rpc_url = rpc_url or DEFAULT_RPC_URL
        self.client = client or Client(self.rpc_url)

    @log_function
    def transfer(self, secret_key: str, destination: str, amount_sol: float) -> str:
        """Envía ``amount_sol`` SOL a ``destination``. Devuelve la firma."""
        lamports = sol_to_lamports(amount_sol)
        if lamports <= 0:
            raise GatewayError(f"Importe de transferencia inválido: {amount_sol} SOL")

        try:
            sender = Keypair.from_base58_string(secret_key)
            receiver = Pubkey.from_string(destination)
        except ValueError as e:
            raise GatewayError(f"Clave o dirección inválida: {mask_secrets(str(e))}") from e

        ix = transfer(TransferParams(from_pubkey=sender.pubkey(), to_pubkey=receiver, lamports=lamports))
        try:
            blockhash = self.client.get_latest_blockhash().value.blockhash
            msg = Message.new_with_blockhash([ix], sender.pubkey(), blockhash)
            tx = Transaction([sender], msg, blockhash)
            signature = self.client.send_transaction(tx).value
            self.client.confirm_transaction(signature, commitment=Confirmed)
        except (RPCException, SolanaRpcException, UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            raise GatewayError(f"Transferencia fallida: {mask_secrets(str(e))}") from e

        logger.info(f"💸 Transferidos {lamports} lamports a {destination}: {signature}")
        return str(signature)

    @log_function
    def get_token_balance(self, owner: str, mint: str) -> Optional[float]:
        """Saldo (en unidades del token) o None si no se puede consultar."""
        try:
            accounts = self.client.get_token_accounts_by_owner(
                Pubkey.from_string(owner), TokenAccountOpts(mint=Pubkey.from_string(mint))
            ).value
            if not accounts:
                return 0.0
            balance = self.client.get_token_account_balance(accounts[0].pubkey).value
            return int(balance.amount) / (10 ** balance.decimals)
        except (RPCException, SolanaRpcException, ValueError) as e:
            logger.error(f"Error consultando saldo de {mint}: {e}")
            return None
