"""
Helpers for reading typed values from CDK context.

Values given with `-c key=value` arrive as strings, while cdk.json can hold
real booleans and numbers, so both forms are accepted.
"""

import aws_cdk as cdk


def context_int(app: cdk.App, key: str, default: int) -> int:
    value = app.node.try_get_context(key)
    if value is None or value == "":
        return default
    return int(value)


def context_flag(app: cdk.App, key: str, default: bool = False) -> bool:
    value = app.node.try_get_context(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)
