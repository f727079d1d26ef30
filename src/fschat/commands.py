"""Embedded command block extraction.

A message may carry any number of blocks of the form::

    <fs-command>
      <operation>write</operation>
      <path>notes/todo.txt</path>
      <content>buy milk</content>
    </fs-command>

Inner tags may appear in any order. ``operation`` and ``path`` are required,
``content`` is optional. Anything between blocks is ordinary text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal
from xml.sax.saxutils import unescape

from loguru import logger

from fschat.errors import CommandParseError, CommandValidationError
from fschat.models import Command

BLOCK_TAG = "fs-command"
FIELD_TAGS = ("operation", "path", "content")
_ENTITIES = {"&quot;": '"', "&apos;": "'"}


@dataclass(frozen=True)
class Diagnostic:
    """Why one block was skipped."""

    offset: int
    error: CommandParseError

    @property
    def kind(self) -> Literal["parse", "validation"]:
        return "validation" if isinstance(self.error, CommandValidationError) else "parse"

    @property
    def reason(self) -> str:
        return str(self.error)


@dataclass(frozen=True)
class ExtractionResult:
    """Commands found in source order, plus diagnostics for skipped blocks."""

    commands: list[Command] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics


class CommandExtractor:
    """Scan free-form text for command blocks.

    Never raises: a block that cannot be used is reported as a diagnostic and
    scanning continues after it.
    """

    def __init__(self, block_tag: str = BLOCK_TAG, field_tags: tuple[str, ...] = FIELD_TAGS) -> None:
        tag = re.escape(block_tag)
        self._open = re.compile(rf"<{tag}\s*>")
        self._close = re.compile(rf"</{tag}\s*>")
        names = "|".join(re.escape(name) for name in field_tags)
        self._field = re.compile(rf"<({names})\s*>(.*?)</\1\s*>", re.DOTALL)

    def extract(self, text: str) -> ExtractionResult:
        commands: list[Command] = []
        diagnostics: list[Diagnostic] = []
        pos = 0
        while True:
            opened = self._open.search(text, pos)
            if opened is None:
                break
            closed = self._close.search(text, opened.end())
            if closed is None:
                diagnostics.append(Diagnostic(opened.start(), CommandParseError("unterminated command block")))
                break
            reopened = self._open.search(text, opened.end(), closed.start())
            if reopened is not None:
                diagnostics.append(
                    Diagnostic(opened.start(), CommandParseError("command block opened inside another block"))
                )
                pos = reopened.start()
                continue
            try:
                commands.append(self._parse_block(text[opened.end() : closed.start()]))
            except CommandParseError as exc:
                diagnostics.append(Diagnostic(opened.start(), exc))
            pos = closed.end()

        for diagnostic in diagnostics:
            logger.warning(
                "commands.block.skipped kind={} offset={} reason={}",
                diagnostic.kind,
                diagnostic.offset,
                diagnostic.reason,
            )
        return ExtractionResult(commands=commands, diagnostics=diagnostics)

    def _parse_block(self, body: str) -> Command:
        fields: dict[str, str] = {}
        for match in self._field.finditer(body):
            name, value = match.group(1), unescape(match.group(2), _ENTITIES)
            if name in fields:
                logger.debug("commands.block.duplicate_field name={}", name)
                continue
            fields[name] = value

        operation = fields.get("operation", "").strip()
        path = fields.get("path", "").strip()
        if not operation:
            raise CommandValidationError("command block is missing <operation>")
        if not path:
            raise CommandValidationError("command block is missing <path>")
        return Command(operation=operation, path=path, content=fields.get("content") or None)


_default_extractor = CommandExtractor()


def extract_commands(text: str) -> list[Command]:
    """Return the well-formed commands embedded in `text`."""
    return _default_extractor.extract(text).commands
