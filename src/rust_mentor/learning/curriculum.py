from __future__ import annotations

from typing import Dict, List, Optional, Sequence

DEFAULT_TOPICS: Dict[str, List[str]] = {
    "en": [
        "Getting Started: Cargo and Hello World",
        "Common Programming Concepts",
        "Understanding Ownership",
        "References and Borrowing",
        "Structs and Methods",
        "Enums and Pattern Matching",
        "Packages, Crates, and Modules",
        "Common Collections",
        "Error Handling",
        "Generics and Traits",
        "Lifetimes",
        "Closures and Iterators",
        "Smart Pointers",
        "Fearless Concurrency",
        "Async Rust",
        "Unsafe Rust and Advanced Features",
    ],
    "zh": [
        "入门：Cargo 与 Hello World",
        "常见编程概念",
        "理解所有权",
        "引用与借用",
        "结构体与方法",
        "枚举与模式匹配",
        "包、Crate 与模块",
        "常见集合",
        "错误处理",
        "泛型与 Trait",
        "生命周期",
        "闭包与迭代器",
        "智能指针",
        "无畏并发",
        "异步 Rust",
        "Unsafe Rust 与高级特性",
    ],
}


def default_topics(language: str) -> List[str]:
    """Built-in chapter list for a display language (English when unknown)."""
    return list(DEFAULT_TOPICS.get(language, DEFAULT_TOPICS["en"]))


def topics_to_show(custom_topics: Optional[Sequence[str]], language: str) -> List[str]:
    """Return the learner's uploaded curriculum when present, else the default list."""
    if custom_topics:
        return list(custom_topics)
    return default_topics(language)


def normalize_topics(raw: Sequence[object]) -> List[str]:
    """Strip chapter titles and drop empty entries, preserving order."""
    topics: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        title = item.strip()
        if title:
            topics.append(title)
    return topics
