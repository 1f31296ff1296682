from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from epns_dispatch.chain.contract import SigningContract, get_interactable_contracts
from epns_dispatch.chain.notifier import ChainNotifier
from epns_dispatch.chain.provider import ApiKeys
from epns_dispatch.config import DispatchConfig
from epns_dispatch.crypto.typed_data import LocalAccountSigner
from epns_dispatch.dispatcher import DeliveryDispatcher
from epns_dispatch.errors import ChainError, SigningError, ValidationError
from epns_dispatch.mode import DispatchMode
from epns_dispatch.payload import Payload, build_payload
from epns_dispatch.records import ChainTxResult, DeliveryRecord, DispatchOutcome, UploadResult
from epns_dispatch.retry import RetryPolicy, deliver_with_retry
from epns_dispatch.signature import SigningContext, sign_v1, sign_v2
from epns_dispatch.storage.uploader import StorageUploader

# notificationStorageType for payloads stored on IPFS
STORAGE_TYPE_IPFS = 1


class DispatchService:
    """Wires the dispatch components from one DispatchConfig.

    Holds no per-dispatch state; every method builds its records locally.
    """

    def __init__(
        self,
        cfg: DispatchConfig,
        *,
        logger: Optional[logging.Logger] = None,
        dispatcher: Optional[DeliveryDispatcher] = None,
        uploader: Optional[StorageUploader] = None,
        notifier: Optional[ChainNotifier] = None,
    ) -> None:
        self.cfg = cfg
        base = logger or logging.getLogger("epns_dispatch")
        self.dispatcher = dispatcher or DeliveryDispatcher(
            cfg.backend_base_url, timeout_s=cfg.http_timeout_s, logger=base.getChild("dispatcher")
        )
        self.uploader = uploader or StorageUploader(
            local_gateway=cfg.ipfs_local_gateway,
            public_gateway=cfg.ipfs_public_gateway,
            timeout_s=cfg.ipfs_timeout_s,
            logger=base.getChild("storage"),
        )
        self.notifier = notifier or ChainNotifier(logger=base.getChild("chain"))

    @property
    def api_keys(self) -> ApiKeys:
        return ApiKeys(
            rpc_url=self.cfg.rpc_url,
            infura_project_id=self.cfg.infura_project_id,
            infura_project_secret=self.cfg.infura_project_secret,
            alchemy_api_key=self.cfg.alchemy_api_key,
        )

    def prepare(self, recipient: Any, payload_type: Any, title: Any, body: Any, **rich: Any) -> Payload:
        return build_payload(recipient, payload_type, title, body, **rich)

    def signing_context(self, private_key: Optional[str] = None) -> SigningContext:
        key = private_key or self.cfg.channel_private_key
        if not key:
            raise SigningError("missing_channel_key", "EPNS_CHANNEL_PRIVATE_KEY is not set")
        return SigningContext(
            network_id=self.cfg.network_id,
            verifying_contract=self.cfg.verifying_contract,
            signer=LocalAccountSigner(key),
        )

    def sign(
        self,
        payload: Payload,
        recipient: Any,
        *,
        version: int = 1,
        channel: Optional[str] = None,
        private_key: Optional[str] = None,
    ) -> DeliveryRecord:
        ctx = self.signing_context(private_key)
        channel = channel or self.cfg.channel_address or ctx.signer.address
        if int(version) == 1:
            return sign_v1(ctx, payload, channel=channel, recipient=recipient)
        if int(version) == 2:
            return sign_v2(ctx, payload, channel=channel, recipient=recipient, chain_tag=self.cfg.chain_tag)
        raise ValidationError("bad_version", f"unsupported record version: {version!r}")

    async def send_offchain(
        self,
        payload: Payload,
        recipient: Any,
        *,
        version: int = 1,
        channel: Optional[str] = None,
        retry: Optional[RetryPolicy] = None,
    ) -> Tuple[DeliveryRecord, DispatchOutcome]:
        record = self.sign(payload, recipient, version=version, channel=channel)
        if retry is None:
            return record, await self.dispatcher.submit(record)
        return record, await deliver_with_retry(self.dispatcher, record, retry)

    async def upload(
        self, payload: Payload, *, gateway: Optional[str] = None, mode: Optional[DispatchMode] = None
    ) -> UploadResult:
        return await self.uploader.upload(payload, gateway=gateway, mode=mode)

    def core_signing_contract(self) -> SigningContract:
        """EPNS core contract bound to the configured channel key."""
        if not self.cfg.core_contract:
            raise ChainError("no_core_contract", "EPNS_CORE_CONTRACT is not set")
        if not self.cfg.channel_private_key:
            raise ChainError("no_signer", "EPNS_CHANNEL_PRIVATE_KEY is not set")
        contracts = get_interactable_contracts(
            self.cfg.network_id, self.api_keys, self.cfg.channel_private_key, self.cfg.core_contract
        )
        return contracts.signing_contract

    async def send_onchain(
        self,
        signing_contract: Optional[SigningContract],
        payload: Payload,
        recipient: Any,
        notification_type: Any,
        *,
        channel: Optional[str] = None,
        storage_type: Any = STORAGE_TYPE_IPFS,
        gateway: Optional[str] = None,
        wait_for_tx: int = 0,
        mode: Optional[DispatchMode] = None,
    ) -> ChainTxResult:
        """Upload the payload, then write `<type>+<cid>` to the contract.

        With no `signing_contract`, a live send uses `core_signing_contract()`.
        """
        if signing_contract is None and not (mode is not None and mode.simulates_tx):
            signing_contract = self.core_signing_contract()

        uploaded = await self.uploader.upload(payload, gateway=gateway, mode=mode)
        return await self.notifier.send_notification(
            signing_contract,
            channel or self.cfg.channel_address or getattr(signing_contract, "address", ""),
            recipient,
            notification_type,
            storage_type,
            uploaded.cid,
            wait_for_tx=wait_for_tx,
            mode=mode,
        )
