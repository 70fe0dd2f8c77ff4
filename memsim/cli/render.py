"""Plain-text rendering of driver snapshots for the CLI."""

from typing import Any, Dict, List

from memsim.runtime.values import ValueKind, value_from_dict, value_to_string


def format_stack(snapshot: Dict[str, Any]) -> List[str]:
    lines = []
    for frame in snapshot["call_stack"]:
        lines.append(f"Stack frame {frame['function_name']}() @ {frame['frame_pointer']}")
        if not frame["variables"]:
            lines.append("  (no variables)")
        for var in frame["variables"]:
            value = value_from_dict(var["value"])
            rendered = value_to_string(value)
            if value.kind == ValueKind.POINTER and not value.is_null:
                rendered = f"-> {rendered}"
            lines.append(f"  {var['address']}  {var['name']:<10} = {rendered}")
    return lines


def format_heap(snapshot: Dict[str, Any]) -> List[str]:
    blocks = snapshot["heap"].values()
    if not blocks:
        return ["Heap: empty"]
    lines = ["Heap:"]
    for block in blocks:
        status = block["status"]
        if block["freed_at"] is not None:
            status += f" (line {block['freed_at']})"
        lines.append(
            f"  {block['address']}  {block['size']:>4} bytes  {status:<18} {block['data']}"
        )
    return lines


def format_errors(errors: List[Dict[str, Any]]) -> List[str]:
    lines = []
    for error in errors:
        lines.append(f"✗ {error['kind']} at line {error['line']}: {error['message']}")
        if error.get("details"):
            lines.append(f"    {error['details']}")
    return lines


def format_events(events: List[Dict[str, Any]]) -> List[str]:
    return [f"  [{e['kind']}] line {e['line']}: {e['message']}" for e in events]


def format_summary(snapshot: Dict[str, Any]) -> str:
    lines = format_stack(snapshot) + format_heap(snapshot)
    if snapshot["errors"]:
        lines += format_errors(snapshot["errors"])
    else:
        lines.append("✓ No memory errors detected")
    return "\n".join(lines)
