"""Prompt builders."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from .schemas import ChartState, TemplateSection, TemplateStructure
from .utils import compact_json

DEFAULT_HISTORY_MESSAGES = 5
DEFAULT_HISTORY_CHARS = 300

HTML_SINGLE_LINE_RULE = (
    "CRITICAL JSON FORMATTING RULE FOR HTML:\n"
    "- All HTML content MUST be on a SINGLE LINE within the JSON string\n"
    "- Do NOT include actual newlines inside HTML strings - they break JSON parsing\n"
    '- Use inline HTML: "<h3>Title</h3><p>Content here</p><ul><li>Item</li></ul>"\n'
    "- NEVER format HTML with line breaks inside the JSON string value"
)

TEMPLATE_CONTENT_SHAPE = (
    "Response format for templateContent:\n"
    "{\n"
    '  "title": "A concise, descriptive title for the chart",\n'
    '  "heading": "A brief subtitle or heading that provides context",\n'
    '  "custom": "Additional context or custom information (if applicable)",\n'
    '  "main": "A comprehensive explanation or analysis related to the chart data"\n'
    "}"
)


def _format_label(section: TemplateSection) -> str:
    return "HTML formatted" if section.is_html else "plain text"


def _unique_types(sections: Iterable[TemplateSection]) -> List[str]:
    seen: List[str] = []
    for section in sections:
        if section.type not in seen:
            seen.append(section.type)
    return seen


def build_system_prompt(context: str, template: Optional[TemplateStructure] = None) -> str:
    prompt = (
        f"{context}\n\n"
        "You are an expert chart data generator. Always respond with valid JSON that follows "
        "Chart.js format and nothing else.\n"
        "Focus on creating accurate, well-structured data that can be immediately used to render charts.\n"
        "Include proper labels, datasets, colors, and configuration options."
    )
    if template is None:
        return prompt

    prompt += (
        "\n\nIMPORTANT: The user has selected a template layout. You MUST also generate relevant "
        "text content for each template text area based on the chart topic.\n"
        'The response must include a "templateContent" object with content for each area type '
        "(title, heading, custom, main)."
    )
    if any(section.is_html for section in template.text_sections()):
        prompt += (
            "\n\nSome sections require HTML formatted content. For those sections, generate "
            "well-structured HTML with semantic tags like <p>, <strong>, <em>, <ul>, <li>, <h3>, <h4>, etc."
            f"\n\n{HTML_SINGLE_LINE_RULE}"
        )
    return prompt


def build_user_prompt(input_text: str, template: Optional[TemplateStructure] = None) -> str:
    prompt = f"User request: {input_text}\n\nPlease generate chart data in valid JSON format."
    if template is None:
        return prompt

    sections = template.text_sections()
    html_sections = [s for s in sections if s.is_html]
    text_sections = [s for s in sections if not s.is_html]

    lines = []
    for section in sections:
        line = f"- {section.name} ({section.type}): Generate {_format_label(section)} content"
        if section.has_note:
            line += f'\n  -> USER NOTE: "{section.note}"'
        lines.append(line)

    prompt += (
        "\n\nTemplate Structure:\n"
        f"- Dimensions: {template.width}px x {template.height}px\n"
        f"- Chart Area: {template.chart_width}px x {template.chart_height}px\n"
        "- Text Sections to populate:\n"
        + "\n".join(lines)
        + '\n\nYour response MUST include a "templateContent" object with content for each section type.'
    )

    noted = [s for s in sections if s.has_note]
    if noted:
        prompt += (
            "\n\nIMPORTANT - User-Specified Instructions:\n"
            "The user has provided specific notes for some sections. "
            "Please follow these instructions carefully:"
        )
        for section in noted:
            prompt += f"\n- {section.name}: {section.note}"

    if html_sections:
        prompt += (
            f"\n\nHTML FORMAT REQUIRED for these sections: {', '.join(_unique_types(html_sections))}\n"
            "For HTML sections, generate well-structured HTML with appropriate tags like "
            "<p>, <strong>, <em>, <ul>, <li>, <h3>, <h4>, <br>, etc.\n\n"
            "CRITICAL: When including HTML in JSON strings, you MUST:\n"
            "1. Keep HTML on a SINGLE LINE (no actual newlines inside the string)\n"
            "2. Use \\n for line breaks if needed\n"
            '3. Escape all double quotes inside HTML as \\"\n\n'
            "CORRECT example in JSON:\n"
            '"main": "<h3>Key Insights</h3><ul><li><strong>Trend:</strong> Growth</li></ul><p>Details here.</p>"'
        )
    if text_sections:
        prompt += (
            f"\n\nPLAIN TEXT FORMAT for these sections: {', '.join(_unique_types(text_sections))}\n"
            "For plain text sections, generate clean, readable text without HTML tags."
        )

    prompt += (
        f"\n\n{TEMPLATE_CONTENT_SHAPE}\n\n"
        "Generate contextually relevant content for each section based on the chart topic and data, "
        "using the specified format (HTML or plain text) for each."
    )
    return prompt


def build_chart_summary(chart_state: Optional[ChartState]) -> str:
    """Describes the current chart in a sentence or two for the model's benefit."""
    if chart_state is None or not chart_state.chart_data:
        return "No chart currently exists."

    data = chart_state.chart_data if isinstance(chart_state.chart_data, Mapping) else {}
    config = chart_state.chart_config if isinstance(chart_state.chart_config, Mapping) else {}
    raw_labels = data.get("labels")
    raw_datasets = data.get("datasets")
    labels = [str(label) for label in raw_labels] if isinstance(raw_labels, list) else []
    datasets = [ds for ds in raw_datasets if isinstance(ds, Mapping)] if isinstance(raw_datasets, list) else []

    summary = f"Current chart is a {chart_state.chart_type} chart"
    if labels:
        summary += f" with {len(labels)} data points"
        if len(labels) <= 5:
            summary += f" (labels: {', '.join(labels)})"
        else:
            summary += f" (labels: {', '.join(labels[:3])}... and {len(labels) - 3} more)"
    if datasets:
        names = ", ".join(f'"{ds.get("label") or "Untitled"}"' for ds in datasets)
        summary += f". It has {len(datasets)} dataset(s): {names}"

    plugins = config.get("plugins")
    title_cfg = plugins.get("title") if isinstance(plugins, Mapping) else None
    title = title_cfg.get("text") if isinstance(title_cfg, Mapping) else None
    if title:
        summary += f'. Chart title: "{title}"'
    return summary


def format_history(
    history: Optional[Iterable[Mapping[str, Any]]],
    max_messages: int = DEFAULT_HISTORY_MESSAGES,
    max_chars: int = DEFAULT_HISTORY_CHARS,
) -> str:
    messages = list(history or [])[-max_messages:] if max_messages > 0 else []
    lines = []
    for message in messages:
        if not isinstance(message, Mapping):
            message = {"role": "user", "content": message}
        content = str(message.get("content") or "")
        if len(content) > max_chars:
            content = f"{content[:max_chars]}..."
        lines.append(f"{message.get('role', 'user')}: {content}")
    return "\n".join(lines)


def build_modification_prompt(
    context: str,
    chart_state: ChartState,
    history: Optional[Iterable[Mapping[str, Any]]],
    input_text: str,
    template: Optional[TemplateStructure] = None,
    max_messages: int = DEFAULT_HISTORY_MESSAGES,
    max_message_chars: int = DEFAULT_HISTORY_CHARS,
) -> str:
    recent_history = format_history(history, max_messages, max_message_chars)

    prompt = (
        f"{context}\n\n"
        "CURRENT CHART SUMMARY (for your understanding):\n"
        f"{build_chart_summary(chart_state)}\n\n"
        "CURRENT CHART STATE (exact data):\n"
        f"- Chart Type: {chart_state.chart_type}\n"
        f"- Data: {compact_json(chart_state.chart_data)}\n"
        f"- Config: {compact_json(chart_state.chart_config)}\n\n"
        f"CONVERSATION HISTORY (last {max_messages} messages):\n"
        f"{recent_history}\n\n"
        f"USER'S CURRENT REQUEST: {input_text}\n\n"
        "IMPORTANT INSTRUCTIONS:\n"
        "1. If user wants to MODIFY this chart -> preserve existing structure, apply only requested changes\n"
        "2. If user wants a COMPLETELY NEW chart on a DIFFERENT TOPIC -> create fresh data from scratch\n"
        "3. Read the conversation history to understand the full context\n\n"
        "Respond with ONLY a JSON object:\n"
        "{\n"
        '  "action": "modify",\n'
        '  "chartType": "same or new type",\n'
        '  "chartData": { /* modified or new data */ },\n'
        '  "chartConfig": { /* modified or new config */ },\n'
        '  "user_message": "Clear explanation of what you did",\n'
        '  "changes": ["list of specific changes made"]'
    )
    if template is not None:
        prompt += ',\n  "templateContent": { /* updated text/HTML for template areas */ }'
    prompt += "\n}"

    if template is None:
        return prompt + "\n\nNOTE: No template is active. Text areas are not available in chart-only mode."

    sections = template.text_sections()
    prompt += "\n\n=== TEMPLATE IS ACTIVE ===\nAvailable text areas you can modify:"
    for section in sections:
        fmt = "HTML" if section.is_html else "plain text"
        prompt += f'\n- "{section.type}" ({section.name}): expects {fmt}'

    noted = [s for s in sections if s.has_note]
    if noted:
        prompt += "\n\nUser instructions for specific areas:"
        for section in noted:
            prompt += f'\n- {section.name}: "{section.note}"'

    if any(section.is_html for section in sections):
        prompt += f"\n\n{HTML_SINGLE_LINE_RULE}"
    prompt += '\n\nREMEMBER: "main text area" = templateContent.main'
    return prompt
