from cronrelay.common.logging import get_logger
from cronrelay.cron.quartz import QuartzCron, QuartzCronParseError, parse_quartz

logger = get_logger(__name__)

UNSPECIFIED = "?"
WILDCARD = "*"


class InvalidUnixCronError(ValueError):
    """The five-field expression is malformed (wrong field count)."""

    def __init__(self, expression):
        self.expression = expression
        super().__init__(f"Invalid Unix Cron Expression: {expression}")


class InvalidQuartzCronError(ValueError):
    """The engine-native expression is well-formed but rejected by the engine's rules."""

    def __init__(self, expression, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid Quartz cron expression: {expression} ({reason})")


def convert_unix_to_quartz(expression: str) -> str:
    """
    Convert "m h dom mon dow" into "0 m h dom mon dow" where exactly one of
    dom/dow is '?'. A concrete day-of-month wins over a wildcard day-of-week.
    """
    fields = expression.split() if isinstance(expression, str) else []
    if len(fields) != 5:
        raise InvalidUnixCronError(expression)

    minute, hour, dom, month, dow = fields
    if dow == WILDCARD:
        if dom == WILDCARD:
            dom = UNSPECIFIED
        else:
            dow = UNSPECIFIED
    elif dom == WILDCARD:
        dom = UNSPECIFIED
    # both concrete: left for validate_quartz to reject
    return " ".join(("0", minute, hour, dom, month, dow))


def validate_quartz(expression: str) -> QuartzCron:
    try:
        return parse_quartz(expression)
    except QuartzCronParseError as exc:
        raise InvalidQuartzCronError(expression, str(exc)) from exc


def validate_and_convert(expression: str) -> str:
    quartz = convert_unix_to_quartz(expression)
    validate_quartz(quartz)
    logger.debug("Converted cron %r -> %r", expression, quartz)
    return quartz
