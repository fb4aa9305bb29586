# utils/json_utils.py

import json
from typing import Optional


def extract_json_object(response: str) -> Optional[dict]:
    """
    Parse the JSON object embedded in an LLM response.

    Takes everything from the first "{" to the last "}", which tolerates code
    fences and chatter around the object. Returns None when there are no
    braces, the slice is not valid JSON, or it is not an object.
    """
    if not response:
        return None

    start = response.find("{")
    end = response.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None

    try:
        parsed = json.loads(response[start:end + 1])
    except json.JSONDecodeError:
        return None

    return parsed if isinstance(parsed, dict) else None
