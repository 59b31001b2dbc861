"""Built-in rule catalog.

Entries use the external catalog format (camelCase keys) and go through the
same validation as a user-supplied ``rulesFile``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from ..models import Rule
from .schema import RuleSpec

SYSTEM_LOGGER = "system"

# Synthetic events raised by the watcher itself; never matched against records.
SYSTEM_CATALOG: list[dict[str, Any]] = [
    {"eventName": "systemEmerg", "logger": SYSTEM_LOGGER, "pattern": "", "message": "{0}"},
    {"eventName": "systemAlert", "logger": SYSTEM_LOGGER, "pattern": "", "message": "{0}"},
    {"eventName": "systemCrit", "logger": SYSTEM_LOGGER, "pattern": "", "message": "{0}"},
    {"eventName": "systemError", "logger": SYSTEM_LOGGER, "pattern": "", "message": "{0}"},
    {"eventName": "systemWarning", "logger": SYSTEM_LOGGER, "pattern": "", "message": "{0}"},
    {"eventName": "systemNotice", "logger": SYSTEM_LOGGER, "pattern": "", "message": "{0}"},
    {"eventName": "systemInfo", "logger": SYSTEM_LOGGER, "pattern": "", "message": "{0}"},
    {
        "eventName": "systemDebug",
        "logger": SYSTEM_LOGGER,
        "pattern": "",
        "message": "{0}",
        "sendToTelegram": False,
    },
    {
        "eventName": "telegramError",
        "logger": "telegram",
        "pattern": "",
        "message": "TelegramError: {0}",
        "sendToTelegram": False,
    },
    {
        "eventName": "sinkError",
        "pattern": "",
        "message": "SinkError: {0}",
        "sendToTelegram": False,
    },
]

APPLICATION_CATALOG: list[dict[str, Any]] = [
    {
        "eventName": "BisqStarting",
        "logger": "b.c.app.Version",
        "pattern": "Version: Version{VERSION={0},",
        "message": "Bisq v{0} starting",
    },
    {
        "eventName": "BisqShutdownCompleted",
        "logger": "b.c.a.BisqExecutable",
        "pattern": "Graceful shutdown completed. Exiting now.",
        "message": "Bisq graceful shutdown completed",
    },
    {
        "eventName": "walletInitialized_p2pNetWorkReady",
        "logger": "b.c.a.BisqSetup",
        "pattern": "walletInitialized=true, p2pNetWorkReady=true",
        "message": "Wallet initialized and P2P network ready",
    },
    {
        "eventName": "MobileNotificationService: Send message",
        "logger": "b.c.n.MobileNotificationService",
        "pattern": "MobileNotificationService: Send message: '{0}'",
        "message": "{0}",
        "isActive": False,
    },
    {
        "eventName": "BlockchainDownloadProgressTracker",
        "logger": "o.b.c.l.DownloadProgressTracker",
        "pattern": "Downloading block chain of size {0}.",
        "message": "Synchronizing Bitcoin blockchain...",
        "sendToTelegram": False,
        "isActive": False,
    },
    {
        "eventName": "End of sync detected",
        "logger": "o.b.c.PeerGroup$ChainDownloadSpeedCalculator",
        "pattern": "End of sync detected at height {0}.",
        "message": "Synchronized with Bitcoin blockchain at block {0}",
        "sendToTelegram": False,
        "isActive": False,
    },
]

DISPUTE_CATALOG: list[dict[str, Any]] = [
    {
        "eventName": "Trader ChatMessage",
        "logger": "b.c.s.t.TraderChatManager",
        "pattern": "Received ChatMessage with tradeId {0:uptoHyphen}",
        "message": "({0}) Received chat message",
        "level": "notice",
    },
    {
        "eventName": "OpenNewDisputeMessage",
        "logger": "b.c.s.d.DisputeManager",
        "pattern": "Send OpenNewDisputeMessage to peer {0}.{1}. tradeId={2:uptoHyphen}",
        "message": "({2}) New dispute open",
        "level": "notice",
    },
    {
        "eventName": "Mediation PeerOpenedDisputeMessage",
        "logger": "b.c.s.d.m.MediationManager",
        "pattern": "Received PeerOpenedDisputeMessage with tradeId {0:uptoHyphen}",
        "message": "({0}) Peer opened mediation",
        "level": "notice",
    },
    {
        "eventName": "Mediation ChatMessage",
        "logger": "b.c.s.d.m.MediationManager",
        "pattern": "Received ChatMessage with tradeId {0:uptoHyphen}",
        "message": "({0}) Received mediation chat message",
        "level": "notice",
    },
    {
        "eventName": "Mediation DisputeResultMessage",
        "logger": "b.c.s.d.m.MediationManager",
        "pattern": "Received DisputeResultMessage with tradeId {0:uptoHyphen}",
        "message": "({0}) Received mediation result message",
        "level": "notice",
    },
    {
        "eventName": "Arbitration PeerOpenedDisputeMessage",
        "logger": "b.c.s.d.r.RefundManager",
        "pattern": "Received PeerOpenedDisputeMessage with tradeId {0:uptoHyphen}",
        "message": "({0}) Peer opened arbitration",
        "level": "notice",
    },
    {
        "eventName": "Arbitration ChatMessage",
        "logger": "b.c.s.d.r.RefundManager",
        "pattern": "Received ChatMessage with tradeId {0:uptoHyphen}",
        "message": "({0}) Received arbitration chat message",
        "level": "notice",
    },
    {
        "eventName": "Arbitration DisputeResultMessage",
        "logger": "b.c.s.d.r.RefundManager",
        "pattern": "Received DisputeResultMessage with tradeId {0:uptoHyphen}",
        "message": "({0}) Received arbitration result message",
        "level": "notice",
    },
]


def _trade_state(role: str, state: str, message: str) -> dict[str, Any]:
    return {
        "eventName": f"{role}_{state}",
        "pattern": f"Set new state at {role} (id={{0:uptoHyphen}}): {state}",
        "message": message,
    }


TRADING_CATALOG: list[dict[str, Any]] = [
    {
        "eventName": "myOfferTaken",
        "pattern": "MyOfferTakenEvents: We got a offer removed. id={0:uptoHyphen}, state=RESERVED",
        "message": "({0}) Your offer with ID {0} was taken.",
    },
    _trade_state(
        "SellerAsMakerTrade",
        "SELLER_PUBLISHED_DEPOSIT_TX",
        "({0}) Deposit transaction is published. Wait for blockchain confirmation!",
    ),
    _trade_state(
        "SellerAsTakerTrade",
        "SELLER_PUBLISHED_DEPOSIT_TX",
        "({0}) You got a new trade with ID {0}. Deposit transaction is published. "
        "Wait for blockchain confirmation!",
    ),
    _trade_state(
        "BuyerAsMakerTrade",
        "BUYER_RECEIVED_DEPOSIT_TX_PUBLISHED_MSG",
        "({0}) Deposit transaction is published. Wait for blockchain confirmation!",
    ),
    _trade_state(
        "BuyerAsTakerTrade",
        "BUYER_RECEIVED_DEPOSIT_TX_PUBLISHED_MSG",
        "({0}) You got a new trade with ID {0}. Deposit transaction is published. "
        "Wait for blockchain confirmation!",
    ),
    _trade_state(
        "SellerAsMakerTrade",
        "DEPOSIT_CONFIRMED_IN_BLOCK_CHAIN",
        "({0}) Deposit transaction is confirmed. Wait until payment has started!",
    ),
    _trade_state(
        "SellerAsTakerTrade",
        "DEPOSIT_CONFIRMED_IN_BLOCK_CHAIN",
        "({0}) Deposit transaction is confirmed. Wait until payment has started!",
    ),
    _trade_state(
        "BuyerAsMakerTrade",
        "DEPOSIT_CONFIRMED_IN_BLOCK_CHAIN",
        "({0}) Deposit transaction is confirmed. Open your Bisq application and start the payment!",
    ),
    _trade_state(
        "BuyerAsTakerTrade",
        "DEPOSIT_CONFIRMED_IN_BLOCK_CHAIN",
        "({0}) Deposit transaction is confirmed. Open your Bisq application and start the payment!",
    ),
    _trade_state(
        "SellerAsMakerTrade",
        "SELLER_RECEIVED_FIAT_PAYMENT_INITIATED_MSG",
        "({0}) BTC buyer has started the payment. Confirm payment received!",
    ),
    _trade_state(
        "SellerAsTakerTrade",
        "SELLER_RECEIVED_FIAT_PAYMENT_INITIATED_MSG",
        "({0}) BTC buyer has started the payment. Confirm payment received!",
    ),
    _trade_state(
        "BuyerAsMakerTrade",
        "BUYER_SAW_ARRIVED_FIAT_PAYMENT_INITIATED_MSG",
        "({0}) BTC seller received fiat payment started message. Wait until payment has arrived!",
    ),
    _trade_state(
        "BuyerAsTakerTrade",
        "BUYER_SAW_ARRIVED_FIAT_PAYMENT_INITIATED_MSG",
        "({0}) BTC seller received fiat payment started message. Wait until payment has arrived!",
    ),
    _trade_state(
        "SellerAsMakerTrade",
        "SELLER_CONFIRMED_IN_UI_FIAT_PAYMENT_RECEIPT",
        "({0}) You confirmed fiat payment receipt.",
    ),
    _trade_state(
        "SellerAsTakerTrade",
        "SELLER_CONFIRMED_IN_UI_FIAT_PAYMENT_RECEIPT",
        "({0}) You confirmed fiat payment receipt.",
    ),
    _trade_state(
        "SellerAsMakerTrade",
        "SELLER_SENT_PAYOUT_TX_PUBLISHED_MSG",
        "({0}) The trade is completed.",
    ),
    _trade_state(
        "SellerAsTakerTrade",
        "SELLER_SENT_PAYOUT_TX_PUBLISHED_MSG",
        "({0}) The trade is completed.",
    ),
    _trade_state(
        "BuyerAsMakerTrade",
        "BUYER_RECEIVED_PAYOUT_TX_PUBLISHED_MSG",
        "({0}) The trade is completed.",
    ),
    _trade_state(
        "BuyerAsTakerTrade",
        "BUYER_RECEIVED_PAYOUT_TX_PUBLISHED_MSG",
        "({0}) The trade is completed.",
    ),
]


class CatalogError(ValueError):
    """Raised when a rule catalog does not validate."""


def load_catalog(entries: Iterable[Mapping[str, Any]]) -> list[Rule]:
    """Validate catalog entries and return rules; later duplicates win."""
    rules: dict[str, Rule] = {}
    for i, entry in enumerate(entries):
        try:
            spec = RuleSpec.model_validate(entry)
        except ValidationError as exc:
            raise CatalogError(f"rule #{i}: {exc}") from exc
        rules.pop(spec.event_name, None)
        rules[spec.event_name] = spec.to_rule()
    return list(rules.values())


def system_rules() -> list[Rule]:
    return load_catalog(SYSTEM_CATALOG)


def default_rules() -> list[Rule]:
    """Rules matched against log records when no ``rulesFile`` is configured."""
    return load_catalog([*APPLICATION_CATALOG, *DISPUTE_CATALOG, *TRADING_CATALOG])
