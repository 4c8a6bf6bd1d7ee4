"""Versioned template store.

The template lives in its own document, next to but separate from the
records it shapes. It can change at any time, independently of record
processing, so the store keeps a cached copy fed by a live subscription
and renders against that copy.

The template document is shaped like::

    {"template": {"greeting": "Hello {{name}}"}, "version": 3}

Readiness:
    Until the subscription delivers its first snapshot the store is not
    ready, and ``render`` suspends the calling task. The first
    ``on_template_changed`` call releases every waiting task at once, in the
    order they started waiting. Later updates never make callers wait; they
    render against whatever is cached at that moment.

Version skew:
    A record remembers the template version its output was rendered with
    (``metadata.currentVersion``). Rendering a record whose version is set
    and differs from the cached version raises ``VersionMismatchError``
    instead of rendering, whichever direction the skew goes.

Examples:
    Rendering against a live template::

        from change_relay.templates import TemplateStore

        templates = TemplateStore(store, "config/template")
        templates.start()

        rendered = await templates.render({"name": "Ann"}, current_version=0)
        rendered.data  # {"greeting": "Hello Ann"}
        rendered.current_version  # 3
"""

import asyncio
from typing import Any

from pydantic import ValidationError

from change_relay.exceptions import TemplateMissingError, VersionMismatchError
from change_relay.models import RecordSnapshot, RenderedOutput, TemplateData
from change_relay.observability.logging import get_logger
from change_relay.observability.metrics import record_template_version
from change_relay.rendering import render_body
from change_relay.storage.base import RecordStore, Unsubscribe

logger = get_logger(__name__)


class TemplateStore:
    """Cached, push-updated template with a one-shot readiness gate.

    Attributes:
        template_path: Path of the template document, if backed by a store.
        strict: Whether missing placeholder values raise RenderError.
    """

    def __init__(
        self,
        record_store: RecordStore | None = None,
        template_path: str | None = None,
        strict: bool = True,
    ) -> None:
        """Initialize a store that is not ready yet.

        Args:
            record_store: Store holding the template document.
            template_path: Path of the template document.
            strict: Raise on placeholders without a value instead of
                substituting an empty string.
        """
        self._record_store = record_store
        self.template_path = template_path
        self.strict = strict
        self._template: TemplateData | None = None
        self._ready = asyncio.Event()
        self._unsubscribe: Unsubscribe | None = None

    @property
    def ready(self) -> bool:
        """True once the first template snapshot has been seen."""
        return self._ready.is_set()

    @property
    def version(self) -> int | None:
        """Version of the cached template, None if there is none."""
        template = self._template
        return template.version if template is not None else None

    def start(self) -> None:
        """Subscribe to the template document."""
        if self._record_store is None or self.template_path is None:
            raise RuntimeError("TemplateStore.start() needs a record store and template path")
        if self._unsubscribe is None:
            self._unsubscribe = self._record_store.subscribe(self.template_path, self._on_snapshot)

    def close(self) -> None:
        """Cancel the template subscription."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_template_changed(self, body: dict[str, Any] | None, version: int | None = None) -> None:
        """Replace the cached template and release waiting renders.

        Must be called from the event loop thread.

        Args:
            body: The new template body, None if the document is gone.
            version: The new template version.
        """
        if body is None:
            self._template = None
            logger.warning("template.missing", template_path=self.template_path)
        else:
            template = TemplateData(template=body, version=version or 0)
            previous = self._template
            if previous is not None and template.version < previous.version:
                logger.warning(
                    "template.version_regressed",
                    previous_version=previous.version,
                    version=template.version,
                )
            self._template = template
            record_template_version(template.version)
            logger.info("template.loaded", version=template.version)

        self._ready.set()

    def _on_snapshot(self, snapshot: RecordSnapshot) -> None:
        template = self._parse(snapshot)
        if template is None:
            self.on_template_changed(None)
        else:
            self.on_template_changed(template.body, template.version)

    def _parse(self, snapshot: RecordSnapshot) -> TemplateData | None:
        if not snapshot.exists:
            return None
        try:
            return TemplateData.model_validate(snapshot.data)
        except ValidationError as e:
            logger.error(
                "template.invalid",
                template_path=snapshot.record_id,
                error=str(e),
            )
            return None

    async def _current(self) -> TemplateData:
        await self._ready.wait()

        template = self._template
        if template is not None:
            return template

        # Subscription says there is no template; check the store directly once.
        if self._record_store is not None and self.template_path is not None:
            template = self._parse(await self._record_store.get(self.template_path))
            if template is not None:
                self.on_template_changed(template.body, template.version)
                return template

        raise TemplateMissingError(
            f"Tried to render non-existent template {self.template_path}",
            template_path=self.template_path,
        )

    async def render(self, data: Any, current_version: int | None = None) -> RenderedOutput:
        """Render the cached template against ``data``.

        Args:
            data: Values for the placeholders.
            current_version: Template version recorded on the record; None or
                0 means the record was never rendered.

        Returns:
            The rendered body paired with the version that produced it.

        Raises:
            TemplateMissingError: If there is no template document.
            VersionMismatchError: If ``current_version`` is set and differs
                from the cached version.
            RenderError: If the body cannot be rendered against ``data``.
        """
        template = await self._current()

        if current_version and current_version != template.version:
            raise VersionMismatchError(
                f"Record rendered with template version {current_version}, "
                f"template is at version {template.version}",
                record_version=current_version,
                template_version=template.version,
            )

        rendered = render_body(template.body, data, strict=self.strict)
        return RenderedOutput(data=rendered, current_version=template.version)
