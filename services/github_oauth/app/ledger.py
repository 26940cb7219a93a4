"""Wallet/GitHub association records kept on the verification contract."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import is_hex_address
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from .config import Settings

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40

VERIFICATION_ABI: list[dict[str, Any]] = [
    {
        "name": "verifyUserWallet",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "wallet", "type": "address"},
            {"name": "githubUsername", "type": "string"},
            {"name": "verificationHash", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "name": "getWalletGitHubInfo",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "wallet", "type": "address"}],
        "outputs": [
            {"name": "githubUsername", "type": "string"},
            {"name": "verified", "type": "bool"},
            {"name": "verificationTimestamp", "type": "uint256"},
        ],
    },
    {
        "name": "getGitHubWallet",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "githubUsername", "type": "string"}],
        "outputs": [{"name": "wallet", "type": "address"}],
    },
]


class LedgerError(RuntimeError):
    """A ledger read or write did not complete."""


def is_wallet_address(value: Optional[str]) -> bool:
    """20-byte ``0x`` hex address; the EIP-55 checksum casing is not enforced."""

    if not value or not isinstance(value, str) or not value.startswith(("0x", "0X")):
        return False
    return is_hex_address(value)


def normalize_handle(handle: str) -> str:
    """GitHub logins are case-insensitive; every lookup keys on lowercase."""

    return handle.strip().lower()


def verification_hash(subject: str, handle: str, timestamp_ms: int) -> str:
    """keccak256(abi.encode(address, string, uint256)) as ``0x`` hex."""

    encoded = abi_encode(
        ["address", "string", "uint256"],
        [Web3.to_checksum_address(subject), handle, timestamp_ms],
    )
    return "0x" + bytes(Web3.keccak(encoded)).hex()


@dataclass(frozen=True)
class LedgerRecord:
    subject: str
    handle: str
    verified: bool
    verification_timestamp: int = 0


class Ledger(Protocol):
    @property
    def write_enabled(self) -> bool: ...

    async def record_verification(self, subject: str, handle: str, proof_hash: str) -> str: ...

    async def wallet_info(self, subject: str) -> LedgerRecord: ...

    async def wallet_for_handle(self, handle: str) -> Optional[str]: ...


class DisabledLedger:
    """Development mode: nothing is written and every wallet reads as unverified."""

    write_enabled = False

    async def record_verification(self, subject: str, handle: str, proof_hash: str) -> str:
        raise LedgerError("Ledger is in development mode; set CONTRACT_ADDRESS and PRIVATE_KEY")

    async def wallet_info(self, subject: str) -> LedgerRecord:
        return LedgerRecord(subject=subject, handle="", verified=False)

    async def wallet_for_handle(self, handle: str) -> Optional[str]:
        return None


class Web3Ledger:
    """Reads and writes the verification contract over JSON-RPC."""

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        *,
        private_key: str = "",
        confirmation_timeout: float = 120.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=VERIFICATION_ABI
        )
        self._account = Account.from_key(private_key) if private_key else None
        self._confirmation_timeout = confirmation_timeout
        # Serializes nonce allocation for the single signer.
        self._write_lock = asyncio.Lock()

    @property
    def write_enabled(self) -> bool:
        return self._account is not None

    async def record_verification(self, subject: str, handle: str, proof_hash: str) -> str:
        """Submit ``verifyUserWallet`` and wait, bounded, for it to be mined."""

        if self._account is None:
            raise LedgerError("Ledger writes require PRIVATE_KEY")
        try:
            return await asyncio.wait_for(
                self._serialized_submit(subject, handle, proof_hash),
                timeout=self._confirmation_timeout,
            )
        except (asyncio.TimeoutError, TimeExhausted) as exc:
            raise LedgerError(
                f"Transaction not confirmed within {self._confirmation_timeout:g}s"
            ) from exc
        except LedgerError:
            raise
        except Exception as exc:
            raise LedgerError(f"Ledger write failed: {exc}") from exc

    async def _serialized_submit(self, subject: str, handle: str, proof_hash: str) -> str:
        async with self._write_lock:
            return await self._submit(subject, handle, proof_hash)

    async def _submit(self, subject: str, handle: str, proof_hash: str) -> str:
        assert self._account is not None
        sender = self._account.address
        nonce = await self._w3.eth.get_transaction_count(sender, "pending")
        tx = await self._contract.functions.verifyUserWallet(
            Web3.to_checksum_address(subject), handle, bytes.fromhex(proof_hash.removeprefix("0x"))
        ).build_transaction({"from": sender, "nonce": nonce})
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = await self._w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._confirmation_timeout
        )
        tx_hex = "0x" + bytes(tx_hash).hex()
        if receipt.get("status") != 1:
            raise LedgerError(f"Transaction {tx_hex} reverted")
        logger.info("Verified wallet %s with GitHub username %s in %s", subject, handle, tx_hex)
        return tx_hex

    async def wallet_info(self, subject: str) -> LedgerRecord:
        try:
            handle, verified, timestamp = await self._contract.functions.getWalletGitHubInfo(
                Web3.to_checksum_address(subject)
            ).call()
        except Exception as exc:
            raise LedgerError(f"Ledger read failed: {exc}") from exc
        return LedgerRecord(
            subject=subject,
            handle=handle,
            verified=bool(verified),
            verification_timestamp=int(timestamp),
        )

    async def wallet_for_handle(self, handle: str) -> Optional[str]:
        try:
            wallet = await self._contract.functions.getGitHubWallet(handle).call()
        except Exception as exc:
            raise LedgerError(f"Ledger read failed: {exc}") from exc
        if not wallet or wallet.lower() == ZERO_ADDRESS:
            return None
        return wallet


def build_ledger(settings: Settings) -> Ledger:
    """Pick the contract-backed ledger when a contract is configured."""

    if not settings.contract_address:
        logger.warning(
            "CONTRACT_ADDRESS is not set; ledger runs in development mode and nothing is saved on-chain"
        )
        return DisabledLedger()
    ledger = Web3Ledger(
        settings.rpc_url,
        settings.contract_address,
        private_key=settings.private_key,
        confirmation_timeout=settings.ledger_confirmation_timeout_seconds,
    )
    if not ledger.write_enabled:
        logger.warning("PRIVATE_KEY is not set; ledger is read-only and verifications are not recorded")
    return ledger
