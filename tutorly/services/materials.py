"""
Session materials

A session's materials list mixes plain references (a bare URL or file key) and
structured attachments. Attachments are stored as tagged JSON objects; entries written by
the legacy front end as "ENHANCED:<json>" strings are still understood on read.
"""
import json
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Union

LEGACY_ATTACHMENT_PREFIX = "ENHANCED:"

ATTACHMENT_KINDS = ("document", "video", "link", "image", "text", "presentation")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlainReference:
    url: str


@dataclass(frozen=True)
class StructuredAttachment:
    name: str
    kind: str = "document"
    url: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None

    def __post_init__(self):
        if self.kind not in ATTACHMENT_KINDS:
            raise ValueError(f"Unknown attachment kind '{self.kind}'")
        if self.kind == "link" and not (self.url or "").strip():
            raise ValueError("Link materials require a URL")
        if self.kind == "text" and not (self.content or "").strip():
            raise ValueError("Text materials require content")


Material = Union[PlainReference, StructuredAttachment]


def _attachment_from_dict(data: Dict[str, Any]) -> StructuredAttachment:
    return StructuredAttachment(
        name=data.get("name") or "",
        kind=data.get("kind") or data.get("type_") or data.get("materialType") or "document",
        url=data.get("url"),
        content=data.get("content"),
        description=data.get("description"),
        mime_type=data.get("mime_type") or data.get("mimeType"),
        size=data.get("size"),
    )


def parse_material(raw: Any) -> Material:
    """Turn one stored materials entry into its variant"""
    if isinstance(raw, (PlainReference, StructuredAttachment)):
        return raw

    if isinstance(raw, dict):
        tag = raw.get("type")
        if tag == "reference":
            if not raw.get("url"):
                raise ValueError("Reference materials require a URL")
            return PlainReference(url=raw["url"])
        if tag == "attachment":
            return _attachment_from_dict(raw)
        raise ValueError(f"Unknown material tag: {tag!r}")

    if isinstance(raw, str):
        if raw.startswith(LEGACY_ATTACHMENT_PREFIX):
            payload = json.loads(raw[len(LEGACY_ATTACHMENT_PREFIX):])
            if not isinstance(payload, dict):
                raise ValueError(f"Legacy material payload is not an object: {raw!r}")
            # Legacy payloads use "type" for the attachment kind
            payload = dict(payload)
            payload.setdefault("kind", payload.pop("type", "document"))
            return _attachment_from_dict(payload)
        return PlainReference(url=raw)

    raise ValueError(f"Unsupported material entry: {raw!r}")


def serialize_material(material: Material) -> Union[str, Dict[str, Any]]:
    """Storage form: plain references stay bare strings, attachments become tagged dicts"""
    if isinstance(material, PlainReference):
        return material.url
    data = {key: value for key, value in asdict(material).items() if value is not None}
    data["type"] = "attachment"
    return data


def parse_materials(raw_list: Optional[List[Any]]) -> List[Material]:
    return [parse_material(item) for item in (raw_list or [])]


def readable_materials(raw_list: Optional[List[Any]]) -> List[Any]:
    """
    Stored materials in their storage form, for responses.

    Entries that no longer parse (old front-end rows, hand edits) are passed through
    unchanged with a warning; writes still go through the strict parser.
    """
    readable = []
    for item in raw_list or []:
        try:
            readable.append(serialize_material(parse_material(item)))
        except ValueError as e:
            logger.warning(f"Unreadable material entry {item!r}: {e}")
            readable.append(item)
    return readable
