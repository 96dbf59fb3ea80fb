"""Supabase Data API (PostgREST) client"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from workdesk.config import SupabaseConfig
from workdesk.errors import Cancelled, DecodeFault, EmptyResult, RemoteFault, TransportFault

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_ANY = TypeAdapter(Any)

# Characters PostgREST treats as syntax inside in.(...) lists and or=(...) groups
_RESERVED = set(',()"')


def format_value(value: Any) -> str:
    """Render a Python value the way PostgREST expects it in a filter"""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _quote(text: str) -> str:
    if any(ch in _RESERVED or ch.isspace() for ch in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass(frozen=True)
class Filter:
    """A single column condition, e.g. ``email=eq.jane@example.com``"""

    column: str
    operator: str
    value: Any

    def _operand(self, quoted: bool) -> str:
        if self.operator == "in":
            return "(" + ",".join(_quote(format_value(v)) for v in self.value) + ")"
        text = format_value(self.value)
        return _quote(text) if quoted else text

    def as_param(self) -> Tuple[str, str]:
        return self.column, f"{self.operator}.{self._operand(quoted=False)}"

    def as_condition(self) -> str:
        return f"{self.column}.{self.operator}.{self._operand(quoted=True)}"


@dataclass(frozen=True)
class AnyOf:
    """OR-combination of conditions: ``or=(status.eq.active,status.eq.waiting)``"""

    conditions: Tuple[Filter, ...]

    def as_param(self) -> Tuple[str, str]:
        return "or", "(" + ",".join(c.as_condition() for c in self.conditions) + ")"


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def is_(column: str, value: Any) -> Filter:
    return Filter(column, "is", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def or_(*conditions: Filter) -> AnyOf:
    return AnyOf(tuple(conditions))


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True

    def render(self) -> str:
        return f"{self.column}.{'asc' if self.ascending else 'desc'}"


def asc(column: str) -> Order:
    return Order(column, True)


def desc(column: str) -> Order:
    return Order(column, False)


@dataclass(frozen=True)
class Embed:
    """
    Related rows embedded in the parent row.

    Renders as ``relation!hint(col,col)`` inside ``select``; ``order`` and
    ``limit`` apply to the embedded rows only (``relation.order=...``).
    """

    relation: str
    columns: Tuple[str, ...] = ("*",)
    hint: Optional[str] = None
    order: Optional[Order] = None
    limit: Optional[int] = None

    def render(self) -> str:
        name = f"{self.relation}!{self.hint}" if self.hint else self.relation
        return f"{name}({','.join(self.columns)})"

    def params(self) -> List[Tuple[str, str]]:
        params = []
        if self.order is not None:
            params.append((f"{self.relation}.order", self.order.render()))
        if self.limit is not None:
            params.append((f"{self.relation}.limit", str(self.limit)))
        return params


def build_query_params(
    columns: Sequence[str] = ("*",),
    filters: Sequence[Any] = (),
    embeds: Sequence[Embed] = (),
    order: Optional[Order] = None,
    limit: Optional[int] = None,
) -> List[Tuple[str, str]]:
    """Build the PostgREST query string as an ordered list of pairs"""
    select = ",".join(list(columns) + [embed.render() for embed in embeds])
    params = [("select", select)]
    params.extend(f.as_param() for f in filters)
    for embed in embeds:
        params.extend(embed.params())
    if order is not None:
        params.append(("order", order.render()))
    if limit is not None:
        params.append(("limit", str(limit)))
    return params


def _jsonable(row: Any) -> Any:
    if isinstance(row, BaseModel):
        return row.model_dump(mode="json")
    return _ANY.dump_python(row, mode="json")


def ensure_success(response: httpx.Response) -> None:
    """
    Raise RemoteFault for any non-2xx response

    Raises:
        RemoteFault: Carrying the exact status code and raw body
    """
    if not response.is_success:
        logger.warning(
            f"Supabase request failed: {response.request.method} {response.request.url.path} "
            f"-> {response.status_code}"
        )
        raise RemoteFault(response.status_code, response.text)


def decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise DecodeFault(f"Unexpected response from Supabase: {e}") from e


def decode_rows(payload: Any, model: Optional[Type[ModelT]] = None) -> List[Any]:
    """
    Decode a PostgREST array payload into rows

    Args:
        payload: Parsed JSON body
        model: Optional pydantic model for each row; plain dicts otherwise

    Returns:
        List of model instances or dicts

    Raises:
        DecodeFault: If the payload is not a list of objects matching the model
    """
    if model is None:
        if not isinstance(payload, list) or not all(isinstance(r, dict) for r in payload):
            raise DecodeFault("Unexpected response from Supabase: expected an array of rows")
        return payload
    try:
        return TypeAdapter(List[model]).validate_python(payload)
    except ValidationError as e:
        raise DecodeFault(f"Could not decode {model.__name__} rows: {e}") from e


class DataApiClient:
    """
    Thin async adapter over ``<base>/rest/v1/<table>``.

    Every call checks the configuration before touching the network, sends
    ``apikey`` plus a bearer credential (the caller's access token, or the
    anon key) and turns non-success statuses into RemoteFault.
    """

    def __init__(self, config: SupabaseConfig, http: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=config.timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "DataApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def headers(
        self,
        access_token: Optional[str] = None,
        prefer: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> Dict[str, str]:
        key = api_key or self.config.anon_key
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {access_token or key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        params: Optional[List[Tuple[str, str]]] = None,
        json: Any = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> httpx.Response:
        """
        Send one request, honouring the cancellation signal

        Raises:
            Cancelled: If ``cancel`` is set before the response arrives
            TransportFault: On connection errors and timeouts
        """
        request = self._http.build_request(
            method, url, headers=headers, params=params, json=json
        )
        try:
            if cancel is None:
                return await self._http.send(request)
            return await self._send_cancellable(request, cancel)
        except httpx.RequestError as e:
            logger.warning(f"Supabase request error: {method} {request.url.path}: {e}")
            raise TransportFault(f"Supabase unavailable: {e}") from e

    async def _send_cancellable(self, request: httpx.Request, cancel: asyncio.Event) -> httpx.Response:
        if cancel.is_set():
            raise Cancelled("Request cancelled before it was sent")

        send_task = asyncio.ensure_future(self._http.send(request))
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if send_task in done:
                return send_task.result()
            raise Cancelled(f"Request cancelled: {request.method} {request.url.path}")
        finally:
            for task in (send_task, cancel_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(send_task, cancel_task, return_exceptions=True)

    def table_url(self, table: str) -> str:
        return f"{self.config.rest_url}/{table}"

    async def query(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        filters: Sequence[Any] = (),
        embeds: Sequence[Embed] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        model: Optional[Type[ModelT]] = None,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[Any]:
        """
        Read rows from a table

        Args:
            table: Table or view name
            columns: Plain columns to select
            filters: Filter / AnyOf conditions, ANDed together
            embeds: Related rows to embed
            order: Ordering of the top-level rows
            limit: Maximum number of top-level rows
            model: Pydantic model to decode each row into
            access_token: End-user JWT (anon key when omitted)
            cancel: Event that aborts the request when set

        Returns:
            Decoded rows
        """
        self.config.ensure_configured()
        response = await self.send(
            "GET",
            self.table_url(table),
            headers=self.headers(access_token),
            params=build_query_params(columns, filters, embeds, order, limit),
            cancel=cancel,
        )
        ensure_success(response)
        return decode_rows(decode_json(response), model)

    async def insert(
        self,
        table: str,
        row: Any,
        *,
        return_representation: bool = True,
        model: Optional[Type[ModelT]] = None,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Optional[List[Any]]:
        """
        Create one row (dict or model) or a list of rows

        Returns:
            The created rows when ``return_representation`` is set, else None

        Raises:
            EmptyResult: If a representation was requested but none came back
        """
        self.config.ensure_configured()
        prefer = "return=representation" if return_representation else "return=minimal"
        payload = [_jsonable(r) for r in row] if isinstance(row, list) else _jsonable(row)
        response = await self.send(
            "POST",
            self.table_url(table),
            headers=self.headers(access_token, prefer=prefer),
            json=payload,
            cancel=cancel,
        )
        ensure_success(response)
        if not return_representation:
            return None

        rows = decode_rows(decode_json(response), model)
        if not rows:
            raise EmptyResult(f"Supabase did not return a {table} record.")
        return rows

    async def update(
        self,
        table: str,
        filters: Sequence[Any],
        patch: Any,
        *,
        return_representation: bool = False,
        model: Optional[Type[ModelT]] = None,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Optional[List[Any]]:
        """Partially update every row matching ``filters``"""
        self.config.ensure_configured()
        prefer = "return=representation" if return_representation else "return=minimal"
        response = await self.send(
            "PATCH",
            self.table_url(table),
            headers=self.headers(access_token, prefer=prefer),
            params=[f.as_param() for f in filters],
            json=_jsonable(patch),
            cancel=cancel,
        )
        ensure_success(response)
        if not return_representation:
            return None

        rows = decode_rows(decode_json(response), model)
        if not rows:
            raise EmptyResult(f"Supabase did not return an updated {table} record.")
        return rows

    async def delete(
        self,
        table: str,
        filters: Sequence[Any],
        *,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """Delete every row matching ``filters``"""
        self.config.ensure_configured()
        response = await self.send(
            "DELETE",
            self.table_url(table),
            headers=self.headers(access_token),
            params=[f.as_param() for f in filters],
            cancel=cancel,
        )
        ensure_success(response)
