"""One log call, from raw arguments to the composed record."""

from dataclasses import dataclass, field

from jsonlog.levels import to_rank, LEVELS

CUSTOM_COLUMNS_KEY = "log_custom_columns"


@dataclass
class LogEvent:
    level: str
    rank: int
    raw_message: str | None
    context: dict = field(default_factory=dict)
    custom_columns: dict = field(default_factory=dict)
    length_prepared: int = 0
    length_truncated: int = 0
    record: dict | None = None

    @classmethod
    def create(cls, level, message, context=None) -> "LogEvent":
        """Validate the level and copy the context; raises InvalidLevel."""
        rank = to_rank(level)
        ctx = dict(context or {})
        # Validated when the columns are resolved, where failures are contained.
        custom = ctx.pop(CUSTOM_COLUMNS_KEY, None) or {}
        return cls(
            level=LEVELS[rank],
            rank=rank,
            raw_message="" if message is None else str(message),
            context=ctx,
            custom_columns=custom,
        )

    def take_raw_message(self) -> str:
        """Hand over the raw message once; later calls get an empty string."""
        message = self.raw_message or ""
        self.raw_message = None
        return message

    @property
    def truncated(self) -> bool:
        return self.length_truncated > 0
