def mask_code(code: str | None) -> str:
    """
    Mask an access code for log output.

    Keeps the first and last character so operators can correlate log lines
    with a user's report without the full code appearing in logs.
    """
    if not code:
        return "<none>"
    if len(code) <= 2:
        return "*" * len(code)
    return f"{code[0]}{'*' * (len(code) - 2)}{code[-1]}"
