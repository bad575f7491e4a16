"""Multi-step scenario: create a resource, then post messages referencing it."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from httpload.config.models import HttpMethod, ScenarioConfig
from httpload.loadgen.client import ClientResponse, execute_request
from httpload.metrics import SampleRecord, StepKind

logger = logging.getLogger(__name__)


def extract_identifier(response: ClientResponse, id_field: str) -> Any | None:
    """Pull ``id_field`` out of a JSON object body, or None if unusable."""
    if not response.success:
        return None
    try:
        payload = json.loads(response.content)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    identifier = payload.get(id_field)
    if identifier is None or identifier == "":
        return None
    return identifier


def render_message_body(template: str, placeholder: str, identifier: Any) -> str:
    return template.replace(placeholder, str(identifier))


async def run_scenario(client: httpx.AsyncClient, config: ScenarioConfig) -> list[SampleRecord]:
    """Run one scenario instance and return every step it attempted.

    Never raises for request-level problems: a failed create, or a create
    response without an identifier, ends the instance after one record.
    """
    create = await execute_request(
        client,
        config.create_url,
        HttpMethod.POST.value,
        config.headers,
        config.create_body,
        config.timeout_sec,
        kind=StepKind.CREATE,
    )
    samples = [create.sample]

    identifier = extract_identifier(create, config.id_field)
    if identifier is None:
        logger.debug(
            "scenario aborted after create (status=%s, error=%s)",
            create.sample.status_code,
            create.sample.error,
        )
        return samples

    body = render_message_body(config.message_body_template, config.placeholder, identifier)
    for _ in range(config.messages_per_conversation):
        message = await execute_request(
            client,
            config.message_url,
            HttpMethod.POST.value,
            config.headers,
            body,
            config.timeout_sec,
            kind=StepKind.MESSAGE,
        )
        samples.append(message.sample)
    return samples
