"""
Example output shapes per node type.

Used only at design time to show which variables a node contributes; the
values are samples, never read by the interpreter.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from workflow_engine.models import NodeType

EXAMPLE_CONTACT = {
    "id": "contact-id",
    "name": "Jane Smith",
    "email": "jane@example.com",
    "phone": "9876543210",
    "companyName": "Example Corp",
    "position": "Manager",
    "type": "LEAD",
    "tags": ["newsletter", "vip"],
}

EXAMPLE_DEAL = {
    "id": "deal-id",
    "name": "Website redesign",
    "value": 5000,
    "currency": "USD",
    "stage": "Proposal",
    "pipelineId": "pipeline-id",
    "contactIds": ["contact-id"],
}

EXAMPLE_CALENDAR = {
    "calendarId": "example@gmail.com",
    "calendarName": "My Calendar",
    "event": {
        "summary": "Meeting Title",
        "description": "Meeting description",
        "attendees": [
            {"email": "attendee1@example.com", "responseStatus": "accepted"},
            {"email": "attendee2@example.com", "responseStatus": "needsAction"},
        ],
        "start": {"dateTime": "2025-01-01T10:00:00Z"},
        "end": {"dateTime": "2025-01-01T11:00:00Z"},
    },
}

_STATIC_EXAMPLES: Dict[str, Dict[str, Any]] = {
    NodeType.MANUAL_TRIGGER.value: {
        "triggeredAt": "2025-01-01T00:00:00.000Z",
        "userId": "user-id",
    },
    NodeType.WEBHOOK_TRIGGER.value: {
        "triggeredAt": "2025-01-01T00:00:00.000Z",
        "body": {"key": "value"},
        "headers": {"content-type": "application/json"},
    },
    NodeType.SCHEDULE_TRIGGER.value: {
        "triggeredAt": "2025-01-01T00:00:00.000Z",
        "cron": "0 9 * * 1",
    },
    NodeType.GOOGLE_CALENDAR_TRIGGER.value: EXAMPLE_CALENDAR,
    NodeType.GMAIL_TRIGGER.value: {
        "messageId": "msg-id",
        "threadId": "thread-id",
        "from": "sender@example.com",
        "subject": "Email Subject",
        "body": "Email body content",
        "labels": ["INBOX", "UNREAD"],
    },
    NodeType.TELEGRAM_TRIGGER.value: {
        "messageId": "123456",
        "chatId": "789",
        "text": "Message text",
        "from": {
            "id": "user-id",
            "username": "username",
            "firstName": "John",
            "lastName": "Doe",
        },
    },
    NodeType.STRIPE_TRIGGER.value: {
        "eventType": "payment_intent.succeeded",
        "eventId": "evt_xxx",
        "amount": 1000,
        "currency": "usd",
        "customer": "cus_xxx",
    },
    NodeType.CREATE_CONTACT.value: EXAMPLE_CONTACT,
    NodeType.UPDATE_CONTACT.value: EXAMPLE_CONTACT,
    NodeType.CREATE_DEAL.value: EXAMPLE_DEAL,
    NodeType.UPDATE_DEAL.value: EXAMPLE_DEAL,
    NodeType.GOOGLE_CALENDAR_EXECUTION.value: {
        "eventId": "event-id",
        "summary": "Event Title",
        "start": "2025-01-01T10:00:00Z",
        "end": "2025-01-01T11:00:00Z",
        "attendees": [],
    },
    NodeType.GMAIL_EXECUTION.value: {
        "messageId": "msg-id",
        "threadId": "thread-id",
        "success": True,
    },
    NodeType.TELEGRAM_EXECUTION.value: {"messageId": "msg-id", "success": True},
    NodeType.SLACK.value: {"messageId": "msg-id", "channelId": "channel-id", "success": True},
    NodeType.DISCORD.value: {"messageId": "msg-id", "channelId": "channel-id", "success": True},
    NodeType.GEMINI.value: {"response": "AI generated response", "tokensUsed": 100},
    NodeType.HTTP_REQUEST.value: {
        "status": 200,
        "ok": True,
        "headers": {"content-type": "application/json"},
        "data": {"id": "result-id"},
    },
    NodeType.IF_ELSE.value: {
        "result": True,
        "leftValue": "left",
        "rightValue": "right",
        "operator": "equals",
        "branchToFollow": "true",
    },
    NodeType.SWITCH.value: {
        "value": "matched value",
        "matchedCase": 0,
        "branchToFollow": "case-0",
    },
}

_GENERIC_EXAMPLE = {"id": "result-id", "success": True}


def get_example_output(node_type: Optional[str], data: Optional[Dict[str, Any]] = None) -> Optional[Any]:
    """
    Example of what a node of ``node_type`` stores under its variable name.

    Returns None for node types that contribute nothing.
    """
    if not node_type or node_type == NodeType.INITIAL.value:
        return None
    data = data or {}

    if node_type == NodeType.GOOGLE_FORM_TRIGGER.value:
        responses = {}
        for field_name in data.get("formFields") or []:
            responses[field_name] = f"Example value for {field_name}"
        return {
            "formId": "example-id",
            "formTitle": "Contact Form",
            "respondentEmail": "respondent@example.com",
            "timestamp": "2025-01-01T00:00:00.000Z",
            "responses": responses,
        }

    if node_type == NodeType.SET_VARIABLE.value:
        value = data.get("value")
        return value if value not in (None, "") else "example value"

    if node_type == NodeType.BUNDLE_WORKFLOW.value:
        outputs = data.get("bundleOutputs") or []
        if outputs:
            return {output.get("name", "output"): "example value" for output in outputs}
        return {"result": "example value"}

    if node_type == NodeType.STOP_WORKFLOW.value:
        return {"stopped": True, "reason": data.get("reason") or "example reason"}

    return _STATIC_EXAMPLES.get(node_type, _GENERIC_EXAMPLE)


def example_value_for_type(type_name: str) -> Any:
    """Sample value for a declared bundle input type."""
    samples = {
        "string": "example text",
        "number": 42,
        "boolean": True,
        "array": ["item1", "item2"],
        "object": {"key": "value"},
        "date": "2025-01-01T00:00:00.000Z",
    }
    return samples.get((type_name or "").lower(), "example value")
