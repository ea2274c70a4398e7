"""Grid data model — rows, columns, images and the structured info record.

Python attributes are snake_case; ``from_dict``/``to_dict`` speak the
camelCase wire names used by the REST API and persisted layouts.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Optional

COLUMN_TYPES = ("text", "number", "currency", "images", "select")

DEFAULT_DEPOT_LOCATION = "QL kitchen"

# wire dataKey -> GridRow attribute
ROW_FIELD_MAP = {
    "id": "id",
    "no": "no",
    "route": "route",
    "code": "code",
    "location": "location",
    "delivery": "delivery",
    "trip": "trip",
    "alt1": "alt1",
    "alt2": "alt2",
    "info": "info",
    "tngSite": "tng_site",
    "tngRoute": "tng_route",
    "destination": "destination",
    "tollPrice": "toll_price",
    "latitude": "latitude",
    "longitude": "longitude",
    "images": "images",
    "sortOrder": "sort_order",
}


@dataclass
class GridImage:
    url: str
    caption: str = ""
    type: Optional[str] = None
    thumbnail: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "GridImage":
        return cls(
            url=str(data.get("url") or ""),
            caption=str(data.get("caption") or ""),
            type=data.get("type"),
            thumbnail=data.get("thumbnail"),
        )

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"url": self.url, "caption": self.caption}
        if self.type is not None:
            result["type"] = self.type
        if self.thumbnail is not None:
            result["thumbnail"] = self.thumbnail
        return result


@dataclass
class InfoRecord:
    """Structured form of a row's address / description / website."""

    address: str = ""
    description: str = ""
    url: str = ""

    @classmethod
    def from_value(cls, value) -> "InfoRecord":
        """Accept a dict, an InfoRecord or a legacy packed string."""
        if isinstance(value, InfoRecord):
            return value
        if isinstance(value, dict):
            return cls(
                address=str(value.get("address") or ""),
                description=str(value.get("description") or ""),
                url=str(value.get("url") or ""),
            )
        from .info_codec import unpack_info

        return unpack_info(str(value) if value is not None else "")

    def to_dict(self) -> dict:
        return {"address": self.address, "description": self.description, "url": self.url}

    def __str__(self) -> str:
        return " ".join(part for part in (self.address, self.description, self.url) if part)


@dataclass
class GridRow:
    id: str
    no: int = 0
    route: str = ""
    code: str = ""
    location: str = ""
    delivery: str = ""
    trip: str = ""
    alt1: str = ""
    alt2: str = ""
    info: InfoRecord = field(default_factory=InfoRecord)
    tng_site: str = ""
    tng_route: str = ""
    destination: str = ""
    toll_price: str = ""
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    images: list[GridImage] = field(default_factory=list)
    sort_order: int = 0
    extra_fields: dict[str, str] = field(default_factory=dict)

    def value(self, data_key: str) -> Any:
        """Resolve a column's dataKey: fixed fields first, then extra fields."""
        attr = ROW_FIELD_MAP.get(data_key)
        if attr is not None:
            return getattr(self, attr)
        return self.extra_fields.get(data_key)

    def search_text(self) -> list[str]:
        """String form of every field value, used by the search predicate."""
        values: list[str] = []
        for f in fields(self):
            raw = getattr(self, f.name)
            if raw is None:
                continue
            if f.name == "images":
                for image in raw:
                    values.extend(v for v in (image.url, image.caption) if v)
            elif f.name == "extra_fields":
                values.extend(str(v) for v in raw.values() if v is not None)
            elif f.name == "info":
                values.extend(v for v in (raw.address, raw.description, raw.url) if v)
            else:
                values.append(str(raw))
        return values

    def is_depot(self, depot_location: str = DEFAULT_DEPOT_LOCATION) -> bool:
        return self.location == depot_location

    @classmethod
    def from_dict(cls, data: dict) -> "GridRow":
        kwargs: dict[str, Any] = {}
        for key, attr in ROW_FIELD_MAP.items():
            if key in data and data[key] is not None:
                kwargs[attr] = data[key]
        kwargs["id"] = str(data.get("id") or "")
        kwargs["no"] = _to_int(kwargs.get("no", 0))
        kwargs["sort_order"] = _to_int(kwargs.get("sort_order", 0))
        kwargs["info"] = InfoRecord.from_value(data.get("info"))
        kwargs["images"] = [GridImage.from_dict(img) for img in data.get("images") or []]
        for coord in ("latitude", "longitude"):
            if coord in kwargs:
                kwargs[coord] = str(kwargs[coord])
        kwargs["extra_fields"] = {
            str(k): "" if v is None else str(v) for k, v in (data.get("extraFields") or {}).items()
        }
        return cls(**kwargs)

    def to_dict(self) -> dict:
        result: dict[str, Any] = {}
        for key, attr in ROW_FIELD_MAP.items():
            result[key] = getattr(self, attr)
        result["info"] = self.info.to_dict()
        result["images"] = [image.to_dict() for image in self.images]
        result["extraFields"] = dict(self.extra_fields)
        return result


@dataclass
class GridColumn:
    id: str
    name: str
    data_key: str
    type: str = "text"
    sort_order: int = 0
    is_editable: bool = True
    options: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "GridColumn":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            data_key=str(data.get("dataKey") or ""),
            type=str(data.get("type") or "text"),
            sort_order=_to_int(data.get("sortOrder", 0)),
            is_editable=parse_flag(data.get("isEditable", True)),
            options=[str(o) for o in data.get("options") or []],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dataKey": self.data_key,
            "type": self.type,
            "sortOrder": self.sort_order,
            "isEditable": "true" if self.is_editable else "false",
            "options": list(self.options),
        }


def parse_flag(value) -> bool:
    """Boolean-as-string flag used on the wire ("true"/"false")."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() == "true"


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
