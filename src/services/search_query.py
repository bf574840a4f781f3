"""Translate a FilterSpec into Box search parameters.

The translation is an ordered pipeline of pure steps over an accumulator
dict. Order matters: the extension step only fills ``query`` when no keyword
set it, owner and tags append to whatever ``query`` holds, and the wildcard
fallback must see the final ``query``/``mdfilters`` state. Box rejects a
search without ``query`` unless ``mdfilters`` is present.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from models.search import (
    EXTENSION_GROUPS,
    DateBucket,
    FilterSpec,
    SearchQuery,
    SizeBucket,
)

SEARCH_FIELDS = "id,name,size,modified_at,type,owned_by,shared_link,item_status,tags,path_collection"
SEARCH_LIMIT = "200"
SEARCH_OFFSET = "0"
ROOT_FOLDER_ID = "0"
WILDCARD_QUERY = "*"

MB = 1048576

# Lookback per date bucket, in days. "yesterday" looks back two days; kept
# as observed until product confirms whether one day was intended.
DATE_LOOKBACK_DAYS = {
    DateBucket.YESTERDAY: 2,
    DateBucket.LAST_WEEK: 7,
    DateBucket.LAST_MONTH: 30,
    DateBucket.LAST_YEAR: 365,
}

# (lower, upper) in bytes; None renders as an empty side
SIZE_RANGES = {
    SizeBucket.SMALL: (None, 1 * MB),
    SizeBucket.MEDIUM: (1 * MB, 5 * MB),
    SizeBucket.LARGE: (5 * MB, 25 * MB),
    SizeBucket.HUGE: (25 * MB, 100 * MB),
    SizeBucket.GIGANTIC: (100 * MB, 1024 * MB),
    SizeBucket.MASSIVE: (1024 * MB, None),
}


@dataclass(frozen=True)
class TranslationContext:
    filters: FilterSpec
    now: datetime
    enterprise_id: str = ""


Step = Callable[[SearchQuery, TranslationContext], SearchQuery]


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def expand_extensions(filters: FilterSpec) -> list[str]:
    """Selected extension groups flattened, first occurrence wins."""
    extensions: list[str] = []
    for group in filters.type_flags.selected_groups():
        for ext in EXTENSION_GROUPS[group]:
            if ext not in extensions:
                extensions.append(ext)
    return extensions


def _append_query(params: SearchQuery, text: str) -> SearchQuery:
    current = params.get("query")
    return {**params, "query": f"{current} {text}" if current else text}


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------

def base_parameters(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """Always first: projection, paging and the root ancestor scope."""
    return {
        **params,
        "fields": SEARCH_FIELDS,
        "limit": SEARCH_LIMIT,
        "offset": SEARCH_OFFSET,
        "ancestor_folder_ids": ROOT_FOLDER_ID,
    }


def keyword_query(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """A non-blank keyword becomes the query as typed."""
    keyword = ctx.filters.keyword
    if keyword and keyword.strip():
        return {**params, "query": keyword}
    return params


def extension_filter(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """Set ``file_extensions``; without a keyword, OR the extensions into ``query``."""
    extensions = expand_extensions(ctx.filters)
    if not extensions:
        return params
    params = {**params, "file_extensions": ",".join(extensions)}
    if not params.get("query"):
        params["query"] = " OR ".join(extensions)
    return params


def container_type(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """Restrict ``type`` only when exactly one of folder/file is wanted."""
    flags = ctx.filters.type_flags
    types = []
    if flags.folder:
        types.append("folder")
    if flags.file or flags.selected_groups():
        types.append("file")
    if len(types) == 1:
        return {**params, "type": types[0]}
    return params


def date_range(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    days = DATE_LOOKBACK_DAYS.get(ctx.filters.date_bucket)
    if days is None:
        return params
    start = ctx.now - timedelta(days=days)
    return {
        **params,
        "updated_at_range": f"{format_timestamp(start)},{format_timestamp(ctx.now)}",
    }


def size_range(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    bounds = SIZE_RANGES.get(ctx.filters.size_bucket)
    if bounds is None:
        return params
    lower, upper = ("" if b is None else str(b) for b in bounds)
    return {**params, "size_range": f"{lower},{upper}"}


def owner_query(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """Box search takes owner ids only, so the owner name is searched as a quoted phrase."""
    owner = ctx.filters.owner
    if not owner:
        return params
    return _append_query(params, f'"{owner}"')


def tags_query(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    tags = ctx.filters.tags
    if not tags:
        return params
    return _append_query(params, tags)


def metadata_filters(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """Serialize the template filter into ``mdfilters`` when a field is actually selected."""
    md = ctx.filters.metadata_filter
    if md is None or not md.template_key:
        return params
    values = md.meaningful_values()
    if not values:
        return params

    scope = md.scope or "enterprise"
    if scope == "enterprise" and ctx.enterprise_id:
        scope = f"enterprise_{ctx.enterprise_id}"

    entry = {"scope": scope, "templateKey": md.template_key, "filters": values}
    return {**params, "mdfilters": json.dumps([entry], separators=(",", ":"))}


def wildcard_fallback(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """Without any query or mdfilters, search everything."""
    if params.get("query") or params.get("mdfilters"):
        return params
    return {**params, "query": WILDCARD_QUERY}


def paging_guard(params: SearchQuery, ctx: TranslationContext) -> SearchQuery:
    """Always last: paging and ancestor scope hold whatever earlier steps did."""
    return {
        **params,
        "limit": SEARCH_LIMIT,
        "offset": SEARCH_OFFSET,
        "ancestor_folder_ids": ROOT_FOLDER_ID,
    }


PIPELINE: tuple[Step, ...] = (
    base_parameters,
    keyword_query,
    extension_filter,
    container_type,
    date_range,
    size_range,
    owner_query,
    tags_query,
    metadata_filters,
    wildcard_fallback,
    paging_guard,
)


def translate(
    filters: FilterSpec,
    *,
    now: Optional[datetime] = None,
    enterprise_id: str = "",
) -> SearchQuery:
    """Build the Box search parameters for *filters*.

    Deterministic for equal ``(filters, now, enterprise_id)``.
    """
    ctx = TranslationContext(
        filters=filters,
        now=now or datetime.now(timezone.utc),
        enterprise_id=enterprise_id,
    )
    params: SearchQuery = {}
    for step in PIPELINE:
        params = step(params, ctx)
    return params
