# parentline/core/dispatch/__init__.py
"""
Dispatch core -- provider-agnostic bulk messaging.

This package holds the pure domain model, the collaborator protocols
(ports), the message composer, the progress event texts and the job
runner. It must not import the provider adapters in ``parentline.infra``
(Sheets, Twilio, automation webhooks) or anything in ``parentline.transport``;
the shared logging and metrics modules are the only ``infra`` imports.

Canonical imports:
    from parentline.core.dispatch import DispatchJobRunner
    from parentline.core.dispatch.domain import RecipientRecord, ProgressEvent
    from parentline.core.dispatch.ports import RecipientSource, MessageChannel, EventSink
"""
from parentline.core.dispatch.domain import (  # noqa: F401
    DONE_SENTINEL,
    FALLBACK_TOKEN,
    BroadcastPlan,
    ComposedMessage,
    DatasetSpec,
    EventKind,
    Failed,
    FailureKind,
    Invalid,
    JobKind,
    JobReport,
    ProgressEvent,
    RecipientRecord,
    Sent,
)
from parentline.core.dispatch.ports import (  # noqa: F401
    EventSink,
    MessageChannel,
    RecipientSource,
)
from parentline.core.dispatch.errors import (  # noqa: F401
    DispatchError,
    EventSinkClosed,
    RecipientSourceError,
    UnknownDatasetError,
)
from parentline.core.dispatch.datasets import (  # noqa: F401
    DAILY_REPORT,
    WEEKLY_MENU,
    DatasetRegistry,
    build_default_registry,
)
from parentline.core.dispatch.runner import DispatchJobRunner  # noqa: F401
