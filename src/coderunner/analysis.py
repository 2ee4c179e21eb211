"""
Heuristic complexity estimate and style feedback.

Pure text-pattern scanning over the submitted source: no parsing, no
execution, deterministic for a given (source, language). The engine calls it
only after a job has reached its terminal state.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .core.schemas import AIFeedback, CodeSuggestion, ComplexityEstimate

_LOOP_RE = re.compile(r"\b(for|while)\b")
_SAME_LINE_NESTED_RE = re.compile(r"\b(for|while)\b.*\b(for|while)\b")
_POOR_NAME_RE = re.compile(r"\b(x|y|z|a|b|c|temp|var)\b")

_FUNC_DEF_RE = {
    "python": re.compile(r"^\s*def\s+([A-Za-z_]\w*)\s*\("),
    "javascript": re.compile(r"^\s*(?:async\s+)?function\s+([A-Za-z_$][\w$]*)\s*\("),
    "java": re.compile(r"^\s*(?:(?:public|private|protected|static|final)\s+)*[\w<>\[\]]+\s+([A-Za-z_]\w*)\s*\([^;]*$"),
    "cpp": re.compile(r"^\s*(?:(?:static|inline|constexpr)\s+)*[\w:<>\*&]+\s+([A-Za-z_]\w*)\s*\([^;]*$"),
}
_NOT_FUNCTIONS = {"if", "for", "while", "switch", "catch", "return", "main", "else"}

_COMMENT_MARK = {"python": "#", "javascript": "//", "java": "//", "cpp": "//"}

_ERROR_HANDLING_SNIPPET = {
    "python": "try:\n    # Your code here\n    ...\nexcept ValueError as e:\n    print(f\"Error: {e}\", file=sys.stderr)",
    "javascript": "try {\n  // Your code here\n} catch (error) {\n  console.error('Error:', error);\n}",
    "java": "try {\n    // Your code here\n} catch (Exception e) {\n    System.err.println(\"Error: \" + e.getMessage());\n}",
    "cpp": "try {\n    // Your code here\n} catch (const std::exception& e) {\n    std::cerr << \"Error: \" << e.what() << std::endl;\n}",
}

_LOOKUP_SNIPPET = {
    "python": "# Build an index once, then look up in O(1)\nby_id = {item.id: item for item in items}",
    "javascript": "// Consider using Map or Set for O(1) lookups\nconst map = new Map();\nfor (const item of items) {\n  map.set(item.id, item);\n}",
    "java": "// Consider a HashMap for O(1) lookups\nMap<Integer, Item> byId = new HashMap<>();\nfor (Item item : items) {\n    byId.put(item.id, item);\n}",
    "cpp": "// Consider an unordered_map for O(1) lookups\nstd::unordered_map<int, Item> byId;\nfor (const auto& item : items) {\n    byId[item.id] = item;\n}",
}


@dataclass
class _Scan:
    lines: List[str]
    loop_lines: List[int]
    nested: bool
    recursive: bool


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def _scan(code: str, language: str) -> _Scan:
    lines = code.split("\n")
    loop_lines: List[int] = []
    nested = False
    open_loops: List[int] = []  # indents of enclosing loop headers
    for no, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        ind = _indent(line)
        while open_loops and ind <= open_loops[-1]:
            open_loops.pop()
        if _LOOP_RE.search(line):
            loop_lines.append(no)
            if open_loops or _SAME_LINE_NESTED_RE.search(line):
                nested = True
            open_loops.append(ind)

    return _Scan(lines=lines, loop_lines=loop_lines, nested=nested, recursive=_has_recursion(lines, language))


def _has_recursion(lines: List[str], language: str) -> bool:
    """A function whose name is called inside its own (indentation-delimited) body."""
    pattern = _FUNC_DEF_RE.get(language)
    if pattern is None:
        return False
    for i, line in enumerate(lines):
        m = pattern.match(line)
        if not m or m.group(1) in _NOT_FUNCTIONS:
            continue
        name, ind = m.group(1), _indent(line)
        call = re.compile(r"\b%s\s*\(" % re.escape(name))
        for body in lines[i + 1:]:
            if body.strip() and _indent(body) <= ind and body.strip() not in ("{",):
                break
            if call.search(body):
                return True
    return False


def analyze_complexity(code: str, language: str) -> ComplexityEstimate:
    scan = _scan(code, language)
    lower = code.lower()

    is_recursive_fib = (
        "fib" in lower
        and scan.recursive
        and re.search(r"n\s*-\s*1", code) is not None
        and re.search(r"n\s*-\s*2", code) is not None
    )
    memoized = "memo" in lower or "cache" in lower
    sorting = "sort" in lower
    binary_search = (
        "binarysearch" in lower
        or "binary_search" in lower
        or re.search(r"mid\s*=\s*\(?\s*(low|lo|left)\s*\+\s*(high|hi|right)", code) is not None
    )
    structures = [
        "[" in code or "Array" in code or "vector" in code or "ArrayList" in code,
        "Map" in code or "map" in code or "dict" in code,
        "Set" in code or "set(" in code,
        "Stack" in code or "push" in code or "pop" in code,
        "Queue" in code or "enqueue" in code or "dequeue" in code or "deque" in code,
    ]
    uses_structures = any(structures)

    if is_recursive_fib and not memoized:
        time_c = "O(2^n)"
        explanation = ("Exponential time complexity due to recursive Fibonacci without memoization. "
                       "Each call creates two new recursive calls.")
    elif scan.nested:
        time_c, explanation = "O(n²)", "Quadratic time complexity due to nested loops."
    elif sorting:
        time_c, explanation = "O(n log n)", "Log-linear time complexity due to sorting operation."
    elif binary_search:
        time_c, explanation = "O(log n)", "Logarithmic time complexity due to binary search."
    elif scan.recursive:
        time_c, explanation = "O(n)", "Linear time complexity for recursive operations."
    elif scan.loop_lines:
        time_c, explanation = "O(n)", "Linear time complexity due to single loop."
    else:
        time_c, explanation = "O(1)", "Constant time and space complexity for basic operations."

    space_c = "O(1)"
    if is_recursive_fib and not memoized:
        space_c = "O(n)"
        explanation += " Linear space complexity due to recursion stack depth of n."
    elif uses_structures:
        if scan.nested:
            space_c = "O(n²)"
            explanation += " Quadratic space complexity due to nested data structures."
        elif scan.loop_lines:
            space_c = "O(n)"
            explanation += " Linear space complexity for data structure storage."
        else:
            explanation += " Constant space complexity for single data structure."
    elif scan.recursive:
        space_c = "O(n)"
        explanation += " Linear space complexity due to recursion stack."

    return ComplexityEstimate(time=time_c, space=space_c, explanation=explanation)


def generate_suggestions(code: str, language: str) -> List[CodeSuggestion]:
    scan = _scan(code, language)
    lines = scan.lines
    lang = language if language in _COMMENT_MARK else "javascript"
    out: List[CodeSuggestion] = []

    if scan.nested:
        out.append(CodeSuggestion(
            type="performance",
            title="Nested Loops Detected",
            description="Consider using more efficient data structures or algorithms to avoid O(n²) complexity.",
            line_numbers=scan.loop_lines,
            severity="warning",
            improvement_code=_LOOKUP_SNIPPET[lang],
        ))

    handler = r"\bexcept\b" if lang == "python" else r"\bcatch\b"
    has_handling = re.search(r"\btry\b", code) is not None and re.search(handler, code) is not None
    if not has_handling:
        out.append(CodeSuggestion(
            type="bestPractice",
            title="Missing Error Handling",
            description="Add error handling to deal with potential failures gracefully.",
            line_numbers=[1],
            severity="critical",
            improvement_code=_ERROR_HANDLING_SNIPPET[lang],
        ))

    comment = _COMMENT_MARK[lang]
    poor: List[int] = []
    for no, line in enumerate(lines, start=1):
        if comment in line or "*" in line or "+" in line:
            continue
        for m in _POOR_NAME_RE.finditer(line):
            if m.group(1) == "var" and lang == "javascript":
                continue
            poor.append(no)
            break
    if poor:
        out.append(CodeSuggestion(
            type="readability",
            title="Poor Variable Naming",
            description="Use descriptive variable names to improve code readability.",
            line_numbers=poor,
            severity="info",
            improvement_code=f"{comment} Instead of:\nx = user_count\n\n{comment} Use:\ntotal_users = user_count",
        ))

    seen: Dict[str, int] = {}
    duplicated: List[int] = []
    for no, line in enumerate(lines, start=1):
        key = line.strip()
        if not key or "{" in key or "}" in key:
            continue
        if key in seen:
            duplicated.append(no)
        else:
            seen[key] = no
    if duplicated:
        out.append(CodeSuggestion(
            type="maintainability",
            title="Code Duplication Detected",
            description="Extract repeated code into functions to improve maintainability.",
            line_numbers=duplicated,
            severity="warning",
        ))

    if lang == "javascript" and "setInterval" in code and "clearInterval" not in code:
        out.append(CodeSuggestion(
            type="memory",
            title="Potential Memory Leak",
            description="Remember to clear intervals when they are no longer needed.",
            line_numbers=[no for no, line in enumerate(lines, start=1) if "setInterval" in line],
            severity="critical",
            improvement_code="const intervalId = setInterval(() => {\n  // Your code here\n}, 1000);\n\n// Clean up when done\nclearInterval(intervalId);",
        ))

    return out


def build_feedback(suggestions: List[CodeSuggestion]) -> AIFeedback:
    n = len(suggestions)
    if n == 0:
        summary = "Code looks good! No major issues detected."
    else:
        summary = f"Code could be improved. Found {n} suggestion{'s' if n > 1 else ''}."
    return AIFeedback(
        suggestions=suggestions,
        overall_quality=10 if n == 0 else max(1, 10 - n),
        summary=summary,
    )


def analyze(code: str, language: Optional[str]) -> Tuple[ComplexityEstimate, AIFeedback]:
    lang = (language or "").lower()
    return analyze_complexity(code, lang), build_feedback(generate_suggestions(code, lang))
