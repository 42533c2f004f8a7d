"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Connector abstraction used by the harness.

An :class:`IntegrationContext` holds named components and invokes them with
endpoint URIs of the form ``<component>://<api>/<method>?<options>``. The
``inBody`` option names the parameter that receives the message body; other
options and headers prefixed with ``GoogleSheets.`` supply the remaining
parameters.

Example::

    context.request_body_and_headers(
        "google-sheets://data/update?inBody=values",
        ValueRange(values=[["a1", "b1"]]),
        {"GoogleSheets.spreadsheetId": spreadsheet_id, "GoogleSheets.range": "TestData!A1:B1"},
    )
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel

from sheets_harness.exceptions import ExecutionError
from sheets_harness.models import (
    BatchUpdateSpreadsheetRequest,
    Spreadsheet,
    ValueRange,
)
from sheets_harness.sheets_client import SheetsClient, SheetsClientFactory

logger = logging.getLogger("sheets_harness.connector")

HEADER_PREFIX = "GoogleSheets."
IN_BODY_OPTION = "inBody"


class Component(Protocol):
    """Something that can be registered in an :class:`IntegrationContext`."""

    def invoke(self, api: str, method: str, parameters: dict[str, Any]) -> Any: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class EndpointUri:
    """A parsed endpoint URI."""

    component: str
    api: str
    method: str
    in_body: str | None = None
    options: dict[str, str] = field(default_factory=dict)

    def parameters(self, body: Any, headers: dict[str, Any] | None) -> dict[str, Any]:
        """
        Merge URI options, prefixed headers and the body into one parameter set.

        Headers take precedence over URI options.

        Raises:
            ValueError: If a body is given but the URI does not name a body parameter
        """
        parameters: dict[str, Any] = dict(self.options)
        for key, value in (headers or {}).items():
            if key.startswith(HEADER_PREFIX):
                parameters[key[len(HEADER_PREFIX) :]] = value

        if body is not None:
            if not self.in_body:
                raise ValueError(f"A body was given but {self} does not set '{IN_BODY_OPTION}'")
            parameters[self.in_body] = body
        return parameters

    def __str__(self) -> str:
        return f"{self.component}://{self.api}/{self.method}"


def parse_endpoint_uri(uri: str) -> EndpointUri:
    """
    Parse ``<component>://<api>/<method>?<options>``.

    Raises:
        ValueError: If a part is missing
    """
    parts = urlsplit(uri)
    method = parts.path.strip("/")
    if not parts.scheme or not parts.netloc or not method:
        raise ValueError(f"Invalid endpoint URI '{uri}', expected <component>://<api>/<method>")

    options = dict(parse_qsl(parts.query))
    in_body = options.pop(IN_BODY_OPTION, None)
    return EndpointUri(
        component=parts.scheme,
        api=parts.netloc,
        method=method,
        in_body=in_body,
        options=options,
    )


def _require(parameters: dict[str, Any], name: str, endpoint: str) -> Any:
    value = parameters.get(name)
    if value is None:
        raise ValueError(f"Missing required parameter '{name}' for {endpoint}")
    return value


def _as_model(value: Any, model: type[BaseModel]) -> Any:
    if isinstance(value, model):
        return value
    if isinstance(value, dict):
        return model.model_validate(value)
    raise TypeError(f"Expected {model.__name__} or dict, got {type(value).__name__}")


def _as_value_range(value: Any) -> ValueRange:
    if isinstance(value, list):
        return ValueRange(values=value)
    return _as_model(value, ValueRange)


class SheetsComponent:
    """Component exposing the Sheets ``spreadsheets`` and ``data`` APIs."""

    def __init__(self, client_factory: SheetsClientFactory):
        self.client_factory = client_factory
        self._client: SheetsClient | None = None
        self._endpoints: dict[tuple[str, str], Callable[[dict[str, Any]], Any]] = {
            ("spreadsheets", "create"): self._create,
            ("spreadsheets", "get"): self._get,
            ("spreadsheets", "batchUpdate"): self._batch_update,
            ("data", "get"): self._get_values,
            ("data", "update"): self._update_values,
            ("data", "append"): self._append_values,
            ("data", "clear"): self._clear_values,
            ("data", "batchGet"): self._batch_get_values,
        }

    @property
    def client(self) -> SheetsClient:
        """The client, created on first use."""
        if self._client is None:
            self._client = self.client_factory.create_client()
        return self._client

    def invoke(self, api: str, method: str, parameters: dict[str, Any]) -> Any:
        """
        Invoke an API method.

        Args:
            api: ``spreadsheets`` or ``data``
            method: Method name within the API
            parameters: Method parameters by name

        Returns:
            The client's result model
        """
        handler = self._endpoints.get((api, method))
        if handler is None:
            raise ValueError(f"Unknown endpoint {api}/{method}")
        logger.debug(f"Invoking {api}/{method} with parameters {sorted(parameters)}")
        return handler(parameters)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
        self.client_factory.close()

    def _create(self, parameters: dict[str, Any]) -> Spreadsheet:
        content = _require(parameters, "content", "spreadsheets/create")
        return self.client.create_spreadsheet(_as_model(content, Spreadsheet))

    def _get(self, parameters: dict[str, Any]) -> Spreadsheet:
        return self.client.get_spreadsheet(_require(parameters, "spreadsheetId", "spreadsheets/get"))

    def _batch_update(self, parameters: dict[str, Any]):
        spreadsheet_id = _require(parameters, "spreadsheetId", "spreadsheets/batchUpdate")
        request = _require(parameters, "batchUpdateSpreadsheetRequest", "spreadsheets/batchUpdate")
        return self.client.batch_update(
            spreadsheet_id, _as_model(request, BatchUpdateSpreadsheetRequest)
        )

    def _get_values(self, parameters: dict[str, Any]) -> ValueRange:
        return self.client.get_values(
            _require(parameters, "spreadsheetId", "data/get"),
            _require(parameters, "range", "data/get"),
            major_dimension=parameters.get("majorDimension"),
            value_render_option=parameters.get("valueRenderOption"),
        )

    def _update_values(self, parameters: dict[str, Any]):
        return self.client.update_values(
            _require(parameters, "spreadsheetId", "data/update"),
            _require(parameters, "range", "data/update"),
            _as_value_range(_require(parameters, "values", "data/update")),
            value_input_option=parameters.get("valueInputOption", "RAW"),
        )

    def _append_values(self, parameters: dict[str, Any]):
        return self.client.append_values(
            _require(parameters, "spreadsheetId", "data/append"),
            _require(parameters, "range", "data/append"),
            _as_value_range(_require(parameters, "values", "data/append")),
            value_input_option=parameters.get("valueInputOption", "RAW"),
            insert_data_option=parameters.get("insertDataOption"),
        )

    def _clear_values(self, parameters: dict[str, Any]):
        return self.client.clear_values(
            _require(parameters, "spreadsheetId", "data/clear"),
            _require(parameters, "range", "data/clear"),
        )

    def _batch_get_values(self, parameters: dict[str, Any]):
        ranges = _require(parameters, "ranges", "data/batchGet")
        if isinstance(ranges, str):
            ranges = [part.strip() for part in ranges.split(",") if part.strip()]
        return self.client.batch_get_values(
            _require(parameters, "spreadsheetId", "data/batchGet"),
            ranges,
            major_dimension=parameters.get("majorDimension"),
            value_render_option=parameters.get("valueRenderOption"),
        )


class IntegrationContext:
    """Registry of named components that executes endpoint URIs."""

    def __init__(self):
        self._components: dict[str, Component] = {}

    def add_component(self, name: str, component: Component) -> None:
        if name in self._components:
            logger.warning(f"Replacing component registered under '{name}'")
        self._components[name] = component
        logger.debug(f"Registered component '{name}': {type(component).__name__}")

    def get_component(self, name: str) -> Component | None:
        return self._components.get(name)

    def request_body(self, uri: str, body: Any) -> Any:
        """Invoke an endpoint with a body and no headers."""
        return self.request_body_and_headers(uri, body, None)

    def request_body_and_headers(
        self, uri: str, body: Any, headers: dict[str, Any] | None
    ) -> Any:
        """
        Invoke an endpoint with a body and headers.

        Args:
            uri: Endpoint URI
            body: Value for the parameter named by ``inBody``, or None
            headers: Headers; ``GoogleSheets.`` prefixed ones become parameters

        Returns:
            The endpoint's result

        Raises:
            ExecutionError: If anything fails, with the original exception as cause
        """
        try:
            endpoint = parse_endpoint_uri(uri)
            component = self._components.get(endpoint.component)
            if component is None:
                raise ValueError(f"No component registered under '{endpoint.component}'")
            return component.invoke(
                endpoint.api, endpoint.method, endpoint.parameters(body, headers)
            )
        except Exception as e:
            logger.error(f"Request to {uri} failed: {type(e).__name__}: {e}")
            raise ExecutionError(uri, e) from e

    def stop(self) -> None:
        """Close all components."""
        for name, component in self._components.items():
            logger.debug(f"Closing component '{name}'")
            component.close()
        self._components = {}
