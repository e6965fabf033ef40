"""Scan session controller.

Drives one scan/lookup cycle at a time::

    IDLE --start--> SCANNING --decode--> RESOLVING --lookup--> RESOLVED | ERROR
                                                                  |
    IDLE <-----------------------restart--------------------------+

The barcode decoding engine and the result display are external
collaborators, described here by the :class:`ScanEngine` and
:class:`ResultRenderer` protocols.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from scanlookup.models import ErrorKind, Failed, Found, LookupResult, NormalizedProduct, NotFound
from scanlookup.services.gateway import LookupGateway

logger = logging.getLogger(__name__)

#: Failure messages the decoding engine emits on every frame without a code.
EXPECTED_SCAN_FAILURES = ("No MultiFormat Readers", "No barcode or QR code detected")


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    ERROR = "error"


DecodeSuccess = Callable[[str, dict[str, Any] | None], Awaitable[Any]]
DecodeFailure = Callable[[str], None]


class ScanEngine(Protocol):
    """Camera-driven barcode decoder."""

    def start(self, on_success: DecodeSuccess, on_failure: DecodeFailure) -> None: ...

    async def clear(self) -> None:
        """Stop decoding and release the camera."""
        ...


class ResultRenderer(Protocol):
    def show_idle(self) -> None: ...

    def show_waiting(self) -> None: ...

    def show_loading(self, barcode: str) -> None: ...

    def show_product(self, barcode: str, product: NormalizedProduct, format_name: str) -> None: ...

    def show_message(self, barcode: str, message: str, format_name: str) -> None: ...


@dataclass
class ScanSession:
    """Mutable per-page scan state."""

    state: ScanState = ScanState.IDLE
    last_barcode: str | None = None
    last_result: LookupResult | None = None

    def reset(self) -> None:
        self.state = ScanState.IDLE
        self.last_barcode = None
        self.last_result = None


def format_name(metadata: dict[str, Any] | None) -> str:
    """Extract the symbology name from decoder metadata, e.g. ``"EAN_13"``."""
    try:
        name = metadata["result"]["format"]["formatName"]  # type: ignore[index]
    except (KeyError, TypeError):
        return "Unknown"
    return str(name) if name else "Unknown"


class ScanSessionController:
    """Owns the :class:`ScanSession` and sequences engine stop and lookup."""

    def __init__(
        self,
        engine: ScanEngine,
        gateway: LookupGateway,
        renderer: ResultRenderer,
        session: ScanSession | None = None,
    ) -> None:
        self.engine = engine
        self.gateway = gateway
        self.renderer = renderer
        self.session = session or ScanSession()
        self.scan_count = 0

    def show_start(self) -> None:
        """Initial page state: nothing running, offer to start scanning."""
        self.renderer.show_idle()

    def start(self) -> None:
        if self.session.state is not ScanState.IDLE:
            logger.info("Scanner already started (state=%s)", self.session.state.value)
            return
        self.renderer.show_waiting()
        self.engine.start(self.on_decode_success, self.on_decode_failure)
        self.session.state = ScanState.SCANNING

    def restart(self) -> None:
        """Handle the "scan another" action."""
        if self.session.state is ScanState.RESOLVING:
            logger.info("Lookup in progress; restart ignored")
            return
        self.session.reset()
        self.start()

    async def on_decode_success(self, text: str, metadata: dict[str, Any] | None = None) -> LookupResult | None:
        """Handle a decoded barcode.

        Returns the lookup result, or ``None`` when the event was ignored
        (repeat of the previous code, or no scan in progress).
        """
        if self.session.state is not ScanState.SCANNING:
            logger.debug("Decode of %s ignored in state %s", text, self.session.state.value)
            return None
        if text == self.session.last_barcode:
            return None

        self.scan_count += 1
        self.session.last_barcode = text
        self.session.state = ScanState.RESOLVING
        logger.info("Scan result %s (%s)", text, format_name(metadata))
        self.renderer.show_loading(text)

        result = await self._resolve(text)
        self.session.last_result = result
        self._show(text, result, format_name(metadata))
        return result

    def on_decode_failure(self, message: str) -> None:
        """Per-frame decode failure; never changes the session state."""
        if any(expected in message for expected in EXPECTED_SCAN_FAILURES):
            logger.debug("No code in frame")
            return
        logger.warning("Code scan error = %s", message)

    async def _resolve(self, barcode: str) -> LookupResult:
        try:
            await self.engine.clear()
        except Exception as e:
            logger.error("Failed to stop scanner: %s", e)
            return Failed(kind=ErrorKind.INTERNAL_ERROR, message=f"Failed to stop scanner: {e}")
        try:
            return await self.gateway.lookup(barcode)
        except Exception as e:
            logger.exception("Product lookup error for %s", barcode)
            return Failed(kind=ErrorKind.INTERNAL_ERROR, message=f"Failed to fetch product data: {e}")

    def _show(self, barcode: str, result: LookupResult, symbology: str) -> None:
        if isinstance(result, Found):
            self.session.state = ScanState.RESOLVED
            self.renderer.show_product(barcode, result.product, symbology)
        elif isinstance(result, NotFound):
            self.session.state = ScanState.RESOLVED
            self.renderer.show_message(barcode, result.reason, symbology)
        else:
            self.session.state = ScanState.ERROR
            self.renderer.show_message(barcode, result.message, symbology)
