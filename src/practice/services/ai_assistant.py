"""AI coding assistant.

Hints, code reviews, bug detection, explanations and similar-problem
recommendations come from the configured LLM. When the provider has no key, cannot be reached or answers
with unusable JSON, each operation returns a curated answer built from
simple heuristics over the code and the problem title, flagged with
``fallback=True`` and a note.

Failure analysis (``analyze_attempt``) looks at an unsolved attempt,
decides whether the student actually failed, and proposes prerequisites,
similar problems and microtasks. Results are cached per user and problem.
"""

from __future__ import annotations

import copy
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

import structlog

from practice.core.models import Problem
from practice.db import suggestions_repository
from practice.llm.client import LLMClient, LLMError, LLMResponseError
from practice.prompts.registry import get_prompt

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

SYSTEM_PROMPT = (
    "You are an expert programming mentor for algorithm and data structure "
    "practice. Always answer with a single valid JSON object."
)

CONFIDENCE_THRESHOLD = 0.6
MAX_SIMILAR_PROBLEMS = 6

FAILURE_TEMPERATURE = 0.2
SUGGESTION_TEMPERATURE = 0.4

PLATFORM_CONTEXT = {
    "leetcode": (
        "This is an interview-style LeetCode problem. Suggest LeetCode problems "
        "with similar tags and difficulty (Easy/Medium/Hard) and emphasize "
        "clean code and interview readiness."
    ),
    "codeforces": (
        "This is a competitive programming problem. Suggest Codeforces problems "
        "within 200-300 rating points, formatted as "
        '"Codeforces 1234A - Problem Name (Rating 800)", matching tags such as '
        "DP, Graph, Math or Greedy."
    ),
    "atcoder": (
        "This is an AtCoder problem (ABC, ARC or AGC; letters A-F grow harder). "
        'Suggest problems formatted as "AtCoder ABC123C - Problem Name" with a '
        "similar letter, considering ABC E/F -> ARC A/B progression."
    ),
}

FALLBACK_SUGGESTIONS: dict[str, list[dict[str, Any]]] = {
    "prerequisites": [
        {
            "title": "Review Data Structures Fundamentals",
            "difficulty": "Easy",
            "reason": "Understanding basic data structures is crucial for most problems",
            "estimated_time": 20,
        },
        {
            "title": "Practice Array Manipulation",
            "difficulty": "Easy",
            "reason": "Arrays are fundamental to many coding problems",
            "estimated_time": 15,
        },
        {
            "title": "Learn Time Complexity Analysis",
            "difficulty": "Medium",
            "reason": "Understanding complexity helps optimize solutions",
            "estimated_time": 25,
        },
    ],
    "similar_problems": [
        {
            "title": "Two Sum",
            "tags": ["Array", "Hash Table"],
            "reason": "Classic problem that teaches hash table usage",
        },
        {
            "title": "Contains Duplicate",
            "tags": ["Array", "Hash Table"],
            "reason": "Similar approach to detecting duplicates",
        },
    ],
    "microtasks": [
        {
            "title": "Trace Through Your Code",
            "description": "Step through your solution with a sample input to find logical errors",
            "duration": 15,
        },
        {
            "title": "Identify Edge Cases",
            "description": "List all edge cases for this problem and test your solution against them",
            "duration": 20,
        },
        {
            "title": "Optimize for Time Complexity",
            "description": "Try to improve your solution's time complexity by one level",
            "duration": 25,
        },
    ],
}

FALLBACK_SIMILAR_PROBLEMS: list[dict[str, Any]] = [
    {
        "title": "Two Sum",
        "platform": "leetcode",
        "difficulty": "Easy",
        "topics": ["Array", "Hash Table"],
        "similarity_score": 0.7,
        "reasoning": "Fundamental array problem for building problem-solving skills",
        "estimated_time": "15-20 min",
        "key_concepts": ["Array traversal", "Hash maps"],
    },
    {
        "title": "A+B Problem",
        "platform": "codeforces",
        "difficulty": "Easy",
        "topics": ["Implementation", "Math"],
        "similarity_score": 0.6,
        "reasoning": "Basic implementation practice",
        "estimated_time": "5-10 min",
        "key_concepts": ["Input/Output", "Basic math"],
    },
    {
        "title": "ABC001 A - Snowy Day",
        "platform": "atcoder",
        "difficulty": "Easy",
        "topics": ["Implementation"],
        "similarity_score": 0.6,
        "reasoning": "Simple implementation problem",
        "estimated_time": "10-15 min",
        "key_concepts": ["Basic logic", "Implementation"],
    },
]

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class AssistantResult:
    """Answer of an assistant operation."""

    data: dict[str, Any]
    fallback: bool = False
    note: str | None = None


@dataclass
class FailureAnalysis:
    failed: bool
    failure_reason: str
    missing_concepts: list[str] = field(default_factory=list)
    confidence: float = 0.0

    @classmethod
    def from_llm(cls, data: dict[str, Any]) -> FailureAnalysis:
        """Build from an LLM answer, coercing loose types."""
        if "failed" not in data:
            raise LLMResponseError("Failure analysis without 'failed' field")
        try:
            confidence = float(data.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        failed = data["failed"]
        if isinstance(failed, str):
            failed = failed.strip().lower() == "true"
        concepts = data.get("missing_concepts") or []
        return cls(
            failed=bool(failed),
            failure_reason=str(data.get("failure_reason", "")),
            missing_concepts=[str(c) for c in concepts if isinstance(c, str)],
            confidence=min(max(confidence, 0.0), 1.0),
        )


@dataclass
class AttemptAnalysis:
    """Outcome of analyzing an unsolved attempt."""

    data: dict[str, Any] | None
    cached: bool = False
    reason: str | None = None
    failure_reason: str | None = None
    confidence: float | None = None
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# CURATED FALLBACKS
# =============================================================================


def _first_line(code: str, predicate: Callable[[str], bool]) -> int:
    """1-based number of the first matching line, 0 if none."""
    for number, line in enumerate(code.split("\n"), start=1):
        if predicate(line):
            return number
    return 0


def _has_recursion(code: str) -> bool:
    return "return" in code and ("function" in code or "def" in code)


def fallback_hint(problem_title: str, difficulty: str) -> dict[str, Any]:
    """Hint chosen by problem title pattern, then by difficulty."""
    title = problem_title.lower()
    level = difficulty.lower()

    if "two sum" in title or "target sum" in title:
        return {
            "level": "moderate",
            "hint": "Think about what data structure allows O(1) lookup time. "
            "You need to find two numbers that add up to a target.",
            "approach": "Use a hash map to store numbers you've seen and their indices. "
            "For each number, check if (target - current number) exists in the map.",
            "next_steps": [
                "Create a hash map to store number -> index pairs",
                "Iterate through the array once",
                "For each number, calculate what you need to find (target - current)",
                "Check if that complement exists in your hash map",
            ],
            "related_concepts": ["Hash Maps", "Complement Search", "O(n) Time Complexity"],
        }

    if "palindrome" in title:
        return {
            "level": "moderate",
            "hint": "A palindrome reads the same forwards and backwards. "
            "Consider using two pointers from opposite ends.",
            "approach": "Use two pointers technique - one from the start and one "
            "from the end, moving towards each other.",
            "next_steps": [
                "Set up two pointers: left at start, right at end",
                "Compare characters at both pointers",
                "Move pointers towards center",
                "Handle edge cases for odd/even length strings",
            ],
            "related_concepts": ["Two Pointers", "String Manipulation", "Symmetry"],
        }

    if "binary" in title or "search" in title:
        return {
            "level": "moderate",
            "hint": "When dealing with sorted data, think about dividing the "
            "search space in half repeatedly.",
            "approach": "Use binary search to efficiently find elements in O(log n) time.",
            "next_steps": [
                "Ensure your data is sorted",
                "Set left and right boundaries",
                "Calculate middle point",
                "Compare and eliminate half the search space",
            ],
            "related_concepts": ["Binary Search", "Divide and Conquer", "Logarithmic Time"],
        }

    if "tree" in title:
        return {
            "level": "moderate",
            "hint": "Tree problems often involve traversal. Consider which "
            "traversal method (DFS, BFS) fits your needs.",
            "approach": "Think about whether you need to process nodes level by "
            "level (BFS) or go deep first (DFS).",
            "next_steps": [
                "Identify if you need DFS (recursive/stack) or BFS (queue)",
                "Consider the base case for recursion",
                "Think about what information to pass between recursive calls",
                "Handle null nodes appropriately",
            ],
            "related_concepts": ["Tree Traversal", "DFS", "BFS", "Recursion"],
        }

    if level == "easy":
        return {
            "level": "gentle",
            "hint": "Start with the simplest approach that works. Focus on "
            "correctness first, then optimize if needed.",
            "approach": "Break down the problem into smaller steps and solve "
            "each step methodically.",
            "next_steps": [
                "Understand the problem requirements clearly",
                "Think of the most straightforward solution",
                "Consider edge cases",
                "Implement step by step",
            ],
            "related_concepts": ["Problem Decomposition", "Edge Cases", "Basic Algorithms"],
        }

    if level == "hard":
        return {
            "level": "detailed",
            "hint": "Hard problems often combine multiple techniques or require "
            "advanced data structures. Look for patterns you recognize.",
            "approach": "Consider if this problem can be broken down into subproblems "
            "or if it requires dynamic programming, graph algorithms, or advanced "
            "data structures.",
            "next_steps": [
                "Identify the core algorithmic challenge",
                "Consider if you've seen similar patterns before",
                "Think about time/space complexity requirements",
                "Consider advanced techniques like DP, graphs, or specialized data structures",
            ],
            "related_concepts": [
                "Dynamic Programming",
                "Graph Algorithms",
                "Advanced Data Structures",
                "Optimization",
            ],
        }

    return {
        "level": "moderate",
        "hint": "Look for patterns in the problem. Often the key insight involves "
        "choosing the right data structure or algorithm approach.",
        "approach": "Consider the time and space complexity requirements, then "
        "choose an appropriate algorithm or data structure.",
        "next_steps": [
            "Analyze the input constraints",
            "Identify the core operation you need to perform efficiently",
            "Choose appropriate data structures",
            "Consider if sorting or preprocessing helps",
        ],
        "related_concepts": [
            "Algorithm Design",
            "Data Structures",
            "Time Complexity",
            "Space Complexity",
        ],
    }


def fallback_code_review(code: str, language: str) -> dict[str, Any]:
    """Heuristic review scored 1..10 per category."""
    if not code or not code.strip():
        return {
            "overall_score": 1,
            "code_quality": {
                "score": 1,
                "feedback": "No code provided for review.",
                "suggestions": ["Please provide code to analyze"],
            },
            "efficiency": {
                "score": 1,
                "feedback": "Cannot analyze efficiency without code.",
                "time_complexity": "N/A",
                "space_complexity": "N/A",
                "optimizations": ["Provide code for analysis"],
            },
            "readability": {
                "score": 1,
                "feedback": "Cannot assess readability without code.",
                "improvements": ["Submit code for review"],
            },
            "best_practices": {
                "score": 1,
                "feedback": "Cannot evaluate best practices without code.",
                "violations": ["No code provided"],
                "recommendations": ["Submit code for analysis"],
            },
            "bugs": {"found": False, "issues": [], "fixes": []},
            "summary": "No code provided for review. Please submit code to receive analysis.",
        }

    length = len(code)
    has_comments = "//" in code or "/*" in code or "#" in code
    has_nested_loops = len(re.findall(r"for|while", code)) > 1
    has_recursion = _has_recursion(code)
    has_error_handling = "try" in code or "catch" in code or "except" in code

    time_complexity = "O(n)"
    space_complexity = "O(1)"
    efficiency_score = 7
    if has_nested_loops:
        time_complexity = "O(n²)"
        efficiency_score = 5
    if has_recursion:
        space_complexity = "O(n)"
        efficiency_score = max(efficiency_score - 1, 4)

    if length < 200:
        quality_score = 8
    elif length < 500:
        quality_score = 7
    else:
        quality_score = 6
    readability_score = 9 if has_comments else 7
    practices_score = 8 if has_error_handling else 6

    total = quality_score + efficiency_score + readability_score + practices_score
    # round half up
    overall = int(total / 4 + 0.5)

    summary = f"Code review complete. Overall score: {overall}/10. "
    if has_nested_loops:
        summary += "Consider optimizing nested loops for better performance. "
    if not has_comments:
        summary += "Adding comments would improve maintainability. "
    if not has_error_handling:
        summary += "Consider adding error handling for robustness."

    return {
        "overall_score": overall,
        "code_quality": {
            "score": quality_score,
            "feedback": "Code is concise and well-structured."
            if length < 200
            else "Code could benefit from being more modular.",
            "suggestions": [
                "Consider breaking down into smaller functions"
                if length > 300
                else "Good code structure",
                "Add input validation for robustness",
            ],
        },
        "efficiency": {
            "score": efficiency_score,
            "feedback": "Nested loops detected - consider optimization."
            if has_nested_loops
            else "Algorithm efficiency looks good.",
            "time_complexity": time_complexity,
            "space_complexity": space_complexity,
            "optimizations": [
                "Consider using hash maps for O(1) lookups",
                "Look for ways to reduce nested iterations",
            ]
            if has_nested_loops
            else ["Code appears well-optimized"],
        },
        "readability": {
            "score": readability_score,
            "feedback": "Good use of comments for clarity."
            if has_comments
            else "Code is readable but could benefit from comments.",
            "improvements": ["Maintain consistent commenting style"]
            if has_comments
            else [
                "Add comments explaining complex logic",
                "Consider more descriptive variable names",
            ],
        },
        "best_practices": {
            "score": practices_score,
            "feedback": "Good error handling practices."
            if has_error_handling
            else "Consider adding error handling.",
            "violations": [] if has_error_handling else ["Missing error handling"],
            "recommendations": [
                "Maintain consistent error handling"
                if has_error_handling
                else "Add try-catch blocks for error handling",
                "Use const/let instead of var"
                if language.lower() == "javascript"
                else "Follow language-specific conventions",
            ],
        },
        "bugs": {"found": False, "issues": [], "fixes": []},
        "summary": summary.strip(),
    }


def fallback_bug_report(code: str, language: str, problem_context: str) -> dict[str, Any]:
    """Pattern-based scan for common bugs."""
    bugs: list[dict[str, Any]] = []
    warnings: list[dict[str, Any]] = []
    suggestions: list[dict[str, Any]] = []

    def off_by_one(line: str) -> bool:
        return "i <= arr.length" in line or "i <= array.length" in line

    if off_by_one(code):
        bugs.append(
            {
                "type": "Array Index Out of Bounds",
                "line": _first_line(code, off_by_one),
                "description": "Loop condition uses <= instead of < which can cause "
                "array index out of bounds",
                "severity": "high",
                "fix": "Change '<= arr.length' to '< arr.length'",
            }
        )

    if "let max = 0" in code and "max" in problem_context.lower():
        warnings.append(
            {
                "type": "Incorrect Initialization",
                "line": _first_line(code, lambda line: "let max = 0" in line),
                "description": "Initializing max to 0 may not work for arrays with "
                "all negative numbers",
                "severity": "medium",
                "fix": "Initialize max to arr[0] or Number.NEGATIVE_INFINITY",
            }
        )

    if "==" in code and "===" not in code:
        warnings.append(
            {
                "type": "Type Coercion",
                "line": _first_line(code, lambda line: "==" in line and "===" not in line),
                "description": "Using == instead of === can lead to unexpected type coercion",
                "severity": "medium",
                "fix": "Use === for strict equality comparison",
            }
        )

    if "return" not in code and language.lower() == "javascript":
        warnings.append(
            {
                "type": "Missing Return Statement",
                "line": len(code.split("\n")),
                "description": "Function may be missing a return statement",
                "severity": "medium",
                "fix": "Add appropriate return statement",
            }
        )

    if code.count("for") > 1:
        suggestions.append(
            {
                "type": "Performance Optimization",
                "description": "Nested loops detected - consider using hash maps for O(1) lookups",
                "impact": "Can improve time complexity from O(n²) to O(n)",
            }
        )

    if ".indexOf(" in code or ".includes(" in code:
        suggestions.append(
            {
                "type": "Data Structure Optimization",
                "description": "Consider using Set or Map for faster lookups instead of array methods",
                "impact": "Improves lookup time from O(n) to O(1)",
            }
        )

    issue_count = len(bugs) + len(warnings)
    if issue_count:
        plural = "s" if issue_count > 1 else ""
        summary = f"Found {issue_count} potential issue{plural} in the code"
    else:
        summary = "No obvious bugs detected in the code"

    return {
        "bugs_found": bool(bugs),
        "issue_count": issue_count,
        "bugs": bugs,
        "warnings": warnings,
        "suggestions": suggestions,
        "summary": summary,
        "recommendations": [
            "Fix critical bugs before deployment" if bugs else "Code appears bug-free",
            "Address warnings to improve code quality"
            if warnings
            else "Good code quality practices",
            "Consider performance optimizations"
            if suggestions
            else "Performance looks acceptable",
        ],
    }


def fallback_explanation(code: str, language: str, problem_title: str) -> dict[str, Any]:
    """Step-by-step explanation from the constructs found in the code."""
    has_loops = re.search(r"for|while|forEach", code) is not None
    has_recursion = _has_recursion(code)
    has_conditionals = re.search(r"if|else|switch|case", code) is not None
    has_data_structures = re.search(r"Map|Set|Array|Object|List|Dict", code) is not None

    title = problem_title.lower()
    if "two sum" in title:
        problem_type = "hash map lookup"
    elif "binary search" in title:
        problem_type = "divide and conquer"
    elif "tree" in title:
        problem_type = "tree traversal"
    elif "sort" in title:
        problem_type = "sorting algorithm"
    else:
        problem_type = "general algorithm"

    lines = [f"This {language} solution implements a {problem_type} approach.", ""]
    lines.append("**Step-by-step breakdown:**")
    lines.append("")
    if has_data_structures:
        lines.append(
            "1. **Data Structure Setup**: The code initializes data structures "
            "to store intermediate results"
        )
    if has_loops:
        lines.append("2. **Iteration**: Uses loops to process input data systematically")
    if has_conditionals:
        lines.append(
            "3. **Conditional Logic**: Implements decision-making logic to handle different cases"
        )
    if has_recursion:
        lines.append(
            "4. **Recursive Approach**: Uses recursion to break down the problem "
            "into smaller subproblems"
        )

    lines.append("")
    lines.append("**Key Concepts:**")
    key_concepts = {
        "hash map lookup": [
            "Hash maps provide O(1) average lookup time",
            "Complement search technique for pair problems",
        ],
        "divide and conquer": [
            "Divides problem space in half each iteration",
            "Achieves O(log n) time complexity",
        ],
        "tree traversal": [
            "Tree traversal patterns (DFS/BFS)",
            "Recursive tree processing",
        ],
    }.get(
        problem_type,
        [
            "Efficient algorithm design principles",
            "Optimal time and space complexity considerations",
        ],
    )
    lines.extend(f"- {concept}" for concept in key_concepts)

    if has_loops and has_recursion:
        time_complexity = "O(n log n)"
    elif has_loops:
        time_complexity = "O(n)"
    else:
        time_complexity = "O(1)"

    return {
        "explanation": "\n".join(lines) + "\n",
        "key_points": [
            "Uses appropriate data structures for efficiency"
            if has_data_structures
            else "Simple algorithmic approach",
            "Iterative processing of input data" if has_loops else "Direct computation method",
            "Handles multiple cases and edge conditions"
            if has_conditionals
            else "Straightforward logic flow",
        ],
        "time_complexity": time_complexity,
        "space_complexity": "O(n)" if has_data_structures else "O(1)",
        "approach": problem_type,
    }


def fallback_suggestions() -> dict[str, list[dict[str, Any]]]:
    return copy.deepcopy(FALLBACK_SUGGESTIONS)


def fallback_similar_problems(topics: list[str]) -> dict[str, Any]:
    """Fixed starter problems; the analysis echoes the first topics."""
    return {
        "recommendations": copy.deepcopy(FALLBACK_SIMILAR_PROBLEMS),
        "analysis": {
            "primary_patterns": list(topics[:3]),
            "skill_focus": [],
            "progression_path": "Practice similar problems to strengthen core concepts",
        },
    }


# =============================================================================
# ASSISTANT
# =============================================================================


def _normalize_bug_report(result: dict[str, Any]) -> dict[str, Any]:
    bugs = result.get("bugs")
    if not isinstance(bugs, list):
        raise LLMResponseError("Bug report without a 'bugs' list")
    result.setdefault("warnings", [])
    result.setdefault("suggestions", [])
    result["bugs_found"] = bool(bugs)
    result["issue_count"] = len(bugs) + len(result["warnings"])
    return result


def _normalize_recommendations(result: dict[str, Any]) -> dict[str, Any]:
    items = result.get("recommendations")
    if not isinstance(items, list):
        raise LLMResponseError("Recommendations without a 'recommendations' list")
    recommendations = []
    for item in items:
        if not isinstance(item, dict) or not item.get("title"):
            continue
        try:
            score = float(item.get("similarity_score", 0.0))
        except (TypeError, ValueError):
            score = 0.0
        item["similarity_score"] = min(max(score, 0.0), 1.0)
        recommendations.append(item)

    analysis = result.get("analysis")
    if not isinstance(analysis, dict):
        analysis = {}
    analysis.setdefault("primary_patterns", [])
    analysis.setdefault("skill_focus", [])
    analysis.setdefault("progression_path", "")
    return {"recommendations": recommendations, "analysis": analysis}


class AIAssistant:
    """LLM-backed helper with curated fallbacks."""

    def __init__(self, client: LLMClient | None = None):
        self._client = client

    def _get_client(self) -> LLMClient:
        if self._client is None:
            self._client = LLMClient()
        return self._client

    @property
    def configured(self) -> bool:
        try:
            return self._get_client().configured
        except LLMError:
            return False

    def status(self, check: bool = False) -> dict[str, Any]:
        """Provider and model in use; ``check`` also pings the provider."""
        try:
            client = self._get_client()
        except LLMError as e:
            return {"configured": False, "error": str(e)}
        info: dict[str, Any] = {
            "provider": client.config.provider,
            "model": client.config.model,
            "configured": client.configured,
        }
        if check:
            info["available"] = client.is_available()
        return info

    def _ask(
        self,
        prompt_key: str,
        kind: str,
        required: tuple[str, ...],
        fallback: Callable[[], dict[str, Any]],
        temperature: float = 0.3,
        normalize: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
        **variables: object,
    ) -> AssistantResult:
        """Ask the LLM for a JSON answer, falling back to curated content."""
        user_prompt = get_prompt(prompt_key, **variables)
        try:
            result = self._get_client().simple_json(
                system_prompt=SYSTEM_PROMPT,
                user_message=user_prompt,
                temperature=temperature,
            )
            missing = [key for key in required if key not in result]
            if missing:
                raise LLMResponseError(f"Missing fields in answer: {', '.join(missing)}")
            if normalize is not None:
                result = normalize(result)
        except LLMResponseError as e:
            logger.warning("ai_answer_unusable", prompt=prompt_key, error=str(e))
            return AssistantResult(
                data=fallback(),
                fallback=True,
                note=f"Using curated {kind} due to parsing issue",
            )
        except LLMError as e:
            logger.warning("ai_service_unavailable", prompt=prompt_key, error=str(e))
            return AssistantResult(
                data=fallback(),
                fallback=True,
                note=f"AI service temporarily unavailable, providing curated {kind}",
            )

        logger.info("ai_answer_generated", prompt=prompt_key)
        return AssistantResult(data=result)

    def hint(
        self,
        problem_title: str,
        problem_description: str,
        difficulty: str = "medium",
        current_attempt: str | None = None,
        stuck_point: str | None = None,
    ) -> AssistantResult:
        return self._ask(
            "ai/hint",
            kind="hint",
            required=("hint",),
            fallback=lambda: fallback_hint(problem_title, difficulty),
            temperature=0.7,
            problem_title=problem_title,
            problem_description=problem_description,
            difficulty=difficulty,
            current_attempt=f"Current attempt:\n{current_attempt}" if current_attempt else "",
            stuck_point=f"Where the student is stuck: {stuck_point}" if stuck_point else "",
        )

    def code_review(
        self,
        code: str,
        language: str,
        problem_title: str = "",
        problem_description: str = "",
    ) -> AssistantResult:
        if not code.strip():
            return AssistantResult(data=fallback_code_review(code, language), fallback=True)
        return self._ask(
            "ai/code_review",
            kind="review",
            required=("overall_score", "summary"),
            fallback=lambda: fallback_code_review(code, language),
            problem_title=problem_title or "Untitled problem",
            problem_description=problem_description,
            language=language,
            code=code,
        )

    def detect_bugs(self, code: str, language: str, problem_context: str = "") -> AssistantResult:
        context = problem_context.strip() or "General code analysis"
        return self._ask(
            "ai/bug_detection",
            kind="bug analysis",
            required=("bugs",),
            fallback=lambda: fallback_bug_report(code, language, context),
            temperature=0.2,
            normalize=_normalize_bug_report,
            problem_context=context,
            language=language,
            code=code,
        )

    def explain(self, code: str, language: str, problem_title: str = "") -> AssistantResult:
        return self._ask(
            "ai/explain",
            kind="explanation",
            required=("explanation",),
            fallback=lambda: fallback_explanation(code, language, problem_title),
            problem_title=problem_title or "Untitled problem",
            language=language,
            code=code,
        )

    def similar_problems(
        self,
        problem_title: str,
        platform: str,
        difficulty: str = "Medium",
        topics: list[str] | None = None,
        problem_description: str | None = None,
        easy: int = 2,
        medium: int = 3,
        hard: int = 1,
    ) -> AssistantResult:
        """Practice problems that train the same patterns, mixed by difficulty."""
        topics = topics or []
        return self._ask(
            "ai/similar",
            kind="recommendations",
            required=("recommendations",),
            fallback=lambda: fallback_similar_problems(topics),
            temperature=0.7,
            normalize=_normalize_recommendations,
            problem_title=problem_title,
            platform=platform,
            difficulty=difficulty,
            topics=", ".join(topics[:2]) or "General",
            problem_description=(
                f"Description: {problem_description}" if problem_description else ""
            ),
            total=easy + medium + hard,
            easy=easy,
            medium=medium,
            hard=hard,
        )

    def detect_failure(
        self,
        problem_title: str,
        problem_description: str,
        transcript: str,
        code: str | None = None,
        difficulty: str | None = None,
    ) -> FailureAnalysis:
        """Decide whether an attempt failed.

        Raises:
            LLMError: If the provider fails or the answer is unusable
        """
        code_section = f"Student's Code:\n```\n{code}\n```" if code else ""
        prompt = get_prompt(
            "ai/failure_detection",
            problem_title=problem_title,
            difficulty=difficulty or "Unknown",
            problem_description=problem_description or "No description provided",
            code=code_section,
            transcript=transcript,
        )
        result = self._get_client().simple_json(
            system_prompt=SYSTEM_PROMPT,
            user_message=prompt,
            temperature=FAILURE_TEMPERATURE,
        )
        analysis = FailureAnalysis.from_llm(result)
        logger.info(
            "failure_detected" if analysis.failed else "no_failure_detected",
            confidence=analysis.confidence,
        )
        return analysis

    def generate_suggestions(
        self,
        problem: Problem,
        failure_reason: str,
        missing_concepts: list[str],
        platform: str | None = None,
        topics: list[str] | None = None,
        companies: list[str] | None = None,
    ) -> dict[str, list[dict[str, Any]]]:
        """Prerequisites, similar problems and microtasks for a failed attempt.

        Raises:
            LLMError: If the provider fails or the answer is unusable
        """
        platform = platform or problem.platform
        topics = topics if topics is not None else problem.topics
        companies = companies if companies is not None else problem.companies

        prompt = get_prompt(
            "ai/suggestions",
            problem_title=problem.title,
            difficulty=problem.difficulty,
            platform=platform,
            topics=", ".join(topics) if topics else "Not specified",
            companies=", ".join(companies) if companies else "Not specified",
            failure_reason=failure_reason,
            missing_concepts=", ".join(missing_concepts),
            platform_context=PLATFORM_CONTEXT.get(platform, ""),
        )
        result = self._get_client().simple_json(
            system_prompt=SYSTEM_PROMPT,
            user_message=prompt,
            temperature=SUGGESTION_TEMPERATURE,
        )

        suggestions = {}
        for key in ("prerequisites", "similar_problems", "microtasks"):
            items = result.get(key)
            if not isinstance(items, list):
                raise LLMResponseError(f"Suggestions without a '{key}' list")
            suggestions[key] = [item for item in items if isinstance(item, dict)]
        suggestions["similar_problems"] = suggestions["similar_problems"][:MAX_SIMILAR_PROBLEMS]
        return suggestions


# =============================================================================
# ATTEMPT ANALYSIS
# =============================================================================


def analyze_attempt(
    assistant: AIAssistant,
    user_id: str,
    problem: Problem,
    transcript: str,
    code: str | None = None,
    problem_description: str | None = None,
    platform: str | None = None,
    topics: list[str] | None = None,
    companies: list[str] | None = None,
) -> AttemptAnalysis:
    """Turn an unsolved attempt into follow-up suggestions.

    Cached suggestions are returned as-is. New ones are generated only
    when a failure is detected with enough confidence. LLM errors yield
    the fixed fallback suggestions, which are not cached.
    """
    cached = suggestions_repository.get_cached_result(user_id, problem.id)
    if cached:
        logger.info("suggestions_cache_hit", problem_id=problem.id)
        return AttemptAnalysis(
            data=cached.get("suggestions"),
            cached=True,
            failure_reason=cached.get("failure_reason"),
            confidence=cached.get("confidence"),
        )

    try:
        analysis = assistant.detect_failure(
            problem.title,
            problem_description or problem.title,
            transcript,
            code=code,
            difficulty=problem.difficulty,
        )
        if not analysis.failed or analysis.confidence < CONFIDENCE_THRESHOLD:
            return AttemptAnalysis(
                data=None,
                reason=f"No failure detected or low confidence ({analysis.confidence:.2f})",
            )

        suggestions = assistant.generate_suggestions(
            problem,
            analysis.failure_reason,
            analysis.missing_concepts,
            platform=platform,
            topics=topics,
            companies=companies,
        )
    except LLMError as e:
        logger.warning("attempt_analysis_failed", problem_id=problem.id, error=str(e))
        return AttemptAnalysis(
            data=fallback_suggestions(),
            note="Using fallback suggestions due to LLM error",
        )

    suggestions_repository.save_result(
        user_id,
        problem.id,
        {
            "suggestions": suggestions,
            "failure_reason": analysis.failure_reason,
            "confidence": analysis.confidence,
        },
    )
    return AttemptAnalysis(
        data=suggestions,
        failure_reason=analysis.failure_reason,
        confidence=analysis.confidence,
    )
