"""Legacy converter for the delimiter-packed ``info`` column.

Storage keeps ``address|||DESCRIPTION|||description|||URL|||url``; everything
above the storage boundary works with :class:`InfoRecord`.
"""

from .records import InfoRecord

DESCRIPTION_MARKER = "|||DESCRIPTION|||"
URL_MARKER = "|||URL|||"


def unpack_info(packed: str | None) -> InfoRecord:
    """Split a legacy packed string into its address, description and url."""
    if not packed:
        return InfoRecord()

    if DESCRIPTION_MARKER in packed:
        address, _, rest = packed.partition(DESCRIPTION_MARKER)
        description = rest.split(URL_MARKER)[0]
    else:
        address = packed.split(URL_MARKER)[0]
        description = ""

    url = packed.split(URL_MARKER)[-1] if URL_MARKER in packed else ""

    return InfoRecord(address=address, description=description, url=url)


def pack_info(info: InfoRecord | None) -> str:
    """Inverse of :func:`unpack_info`. Empty trailing parts are omitted."""
    if info is None:
        return ""
    packed = info.address
    if info.description.strip() or info.url.strip():
        packed += f"{DESCRIPTION_MARKER}{info.description}"
        if info.url.strip():
            packed += f"{URL_MARKER}{info.url}"
    return packed


def normalize_url(url: str) -> str:
    """Prefix ``https://`` when the url carries no http(s) scheme."""
    target = url.strip()
    if not target:
        return ""
    if not target.startswith(("http://", "https://")):
        target = "https://" + target
    return target
