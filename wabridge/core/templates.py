"""
Template variable substitution.

Shared by single sends and broadcasts. Variables are grouped per component
(header, body, footer) and keyed by positional strings ("1", "2", ...).
Rendering fills `{{n}}` placeholders for display; the provider instead
receives ordered parameter lists and fills the template itself.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from wabridge.schemas.messaging import (
    MediaMetadata,
    MessageType,
    TemplateDefinition,
    TemplatePayload,
    TemplateVariables,
)

COMPONENT_GROUPS = ("header", "body", "footer")


def render(text: Optional[str], variables: Optional[Mapping[str, str]]) -> Optional[str]:
    """
    Replace every `{{key}}` for each key in variables.

    Placeholders without a matching key are left as they are.
    """
    if not text or not variables:
        return text
    result = text
    for key, value in variables.items():
        result = result.replace("{{" + str(key) + "}}", str(value))
    return result


def _numeric_key(key: str) -> int:
    try:
        return int(key)
    except (TypeError, ValueError):
        raise ValueError(f"Template variable keys must be numeric, got {key!r}") from None


def build_parameters(variables: Mapping[str, str]) -> list[dict[str, str]]:
    """Provider parameter list, ordered by numeric key ("10" after "9")."""
    return [
        {"type": "text", "text": variables[key]}
        for key in sorted(variables, key=_numeric_key)
    ]


def build_components(variables: Optional[TemplateVariables]) -> list[dict[str, Any]]:
    """Header/body/footer parameter blocks; empty groups are omitted."""
    if variables is None:
        return []
    components: list[dict[str, Any]] = []
    for group in COMPONENT_GROUPS:
        values = getattr(variables, group)
        if values:
            components.append({"type": group, "parameters": build_parameters(values)})
    return components


def build_template_object(
    payload: TemplatePayload, components: Optional[list[dict[str, Any]]] = None
) -> dict[str, Any]:
    """The `template` object of a send request."""
    if components is None:
        components = build_components(payload.variables)
    template: dict[str, Any] = {
        "name": payload.name,
        "language": {"code": payload.language_code or "en"},
    }
    if components:
        template["components"] = components
    return template


def _find_component(
    template: Optional[TemplateDefinition], component_type: str
) -> Optional[Any]:
    if template is None:
        return None
    for component in template.components:
        if component.type.upper() == component_type:
            return component
    return None


def render_template_components(
    template: Optional[TemplateDefinition], variables: TemplateVariables
) -> dict[str, Any]:
    """Rendered header/body/footer/buttons for display alongside the stored row."""
    processed: dict[str, Any] = {
        "header": None,
        "body": None,
        "footer": None,
        "buttons": [],
    }
    if template is None:
        return processed
    for component in template.components:
        kind = component.type.upper()
        if kind == "HEADER":
            processed["header"] = {
                "format": component.format or "TEXT",
                "text": render(component.text, variables.header),
                "media_url": None,
            }
        elif kind == "BODY":
            processed["body"] = {"text": render(component.text, variables.body)}
        elif kind == "FOOTER":
            processed["footer"] = {"text": render(component.text, variables.footer)}
        elif kind == "BUTTONS":
            processed["buttons"] = [
                button.model_dump(exclude_none=True) for button in component.buttons
            ]
    return processed


def display_content(payload: TemplatePayload) -> str:
    """Rendered body text, else the caller's fallback, else `Template: {name}`."""
    body = _find_component(payload.template, "BODY")
    if body is not None and body.text:
        return render(body.text, payload.variables.body)
    return payload.fallback_text or f"Template: {payload.name}"


def build_template_metadata(payload: TemplatePayload) -> MediaMetadata:
    """media_data for a template row: template identity plus rendered components."""
    body = _find_component(payload.template, "BODY")
    processed = render_template_components(payload.template, payload.variables)
    return MediaMetadata(
        type=MessageType.TEMPLATE.value,
        template_name=payload.name,
        template_id=payload.template.id if payload.template else None,
        language=payload.language_code,
        variables=payload.variables.model_dump(),
        original_content=(body.text if body is not None and body.text else payload.name),
        header=processed["header"],
        body=processed["body"],
        footer=processed["footer"],
        buttons=processed["buttons"],
    )
