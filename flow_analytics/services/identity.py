"""
Identity resolution between report rows and canonical flow messages.

The reporting endpoint groups rows by flow action id and only sometimes
carries the flow message id, while the message listing is keyed by message
id. IdentityResolver builds both lookups once per request:

    by_message_id: message id -> FlowMessage
    by_action_id:  action id  -> message id (first message of the action)

Resolution order for a row:
1. action id known            -> that action's canonical message
2. message id known           -> that message
3. otherwise                  -> synthesized identity using the raw id
                                 (message id, else action id) as both id
                                 and display name

Rows with neither id are unidentifiable and dropped; rows whose resolved
channel is not email are dropped.
"""

from typing import Dict, Iterable, List, Optional

from flow_analytics.models.enums import Channel
from flow_analytics.models.schemas import FlowMessage, ReportRow, ResolvedIdentity


class IdentityResolver:
    """Bidirectional message/action lookup for one request."""

    def __init__(self, messages: Iterable[FlowMessage]) -> None:
        self.by_message_id: Dict[str, FlowMessage] = {}
        self.by_action_id: Dict[str, str] = {}
        self._by_flow: Dict[str, List[FlowMessage]] = {}
        for message in messages:
            self.add(message)

    def add(self, message: FlowMessage) -> None:
        if message.id in self.by_message_id:
            return
        self.by_message_id[message.id] = message
        self._by_flow.setdefault(message.flowId, []).append(message)
        if message.actionId and message.actionId not in self.by_action_id:
            self.by_action_id[message.actionId] = message.id

    def resolve(self, row: ReportRow) -> Optional[ResolvedIdentity]:
        """
        Resolve a report row to its canonical message identity.

        Args:
            row: Raw report row.

        Returns:
            ResolvedIdentity, or None when the row is unidentifiable or not
            an email row.
        """
        message: Optional[FlowMessage] = None
        if row.flow_action_id and row.flow_action_id in self.by_action_id:
            message = self.by_message_id[self.by_action_id[row.flow_action_id]]
        elif row.flow_message_id and row.flow_message_id in self.by_message_id:
            message = self.by_message_id[row.flow_message_id]

        if message is not None:
            identity = ResolvedIdentity(
                messageId=message.id,
                name=message.name or message.id,
                channel=message.channel.value,
            )
        else:
            raw_id = row.flow_message_id or row.flow_action_id
            if not raw_id:
                return None
            identity = ResolvedIdentity(
                messageId=raw_id,
                name=raw_id,
                channel=(row.send_channel or Channel.EMAIL.value).strip().lower(),
            )

        if identity.channel != Channel.EMAIL.value:
            return None
        return identity

    def email_messages(self, flow_id: str) -> List[FlowMessage]:
        """Known email steps of a flow, in sequence order."""
        return [
            message
            for message in self._by_flow.get(flow_id, [])
            if message.channel == Channel.EMAIL
        ]

    def message(self, message_id: str) -> Optional[FlowMessage]:
        return self.by_message_id.get(message_id)


__all__ = ['IdentityResolver']
