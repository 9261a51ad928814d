"""
Student Feedback Processing
===========================

Turns end-of-session survey exports (CSV) into the data behind the feedback
report: per-session comments, timing answers and learning-outcome tallies,
plus a word cloud of the most frequent comment words.

Everything here is synchronous and model-free. The router feeds the results
into two model calls (word sentiment, per-session summary) and merges the
answers back with ``apply_sentiment`` and ``merge_results``.

Expected columns:
- ``Student Id``; the columns between it and ``Timing`` are learning outcomes
- ``Timing``; one of three fixed answers
- ``Student Feedback``; free text
"""

from __future__ import annotations

import csv
import io
import json
import re
from collections import Counter
from typing import Any, Dict, List, Optional


STUDENT_ID_HEADER = "Student Id"
TIMING_COLUMN_HEADER = "Timing"
FEEDBACK_COLUMN_HEADER = "Student Feedback"
OMIT_COMMENT_STRINGS = {"none", "n/a", "-"}

TIMING_LESS = "It took less time to complete the tasks and activities than estimated"
TIMING_MORE = "It took more time to complete the tasks and activities than estimated"
TIMING_SAME = "It took about the same amount of time to complete the tasks and activities as estimated"
_TIMING_KEYS = {TIMING_LESS: "less", TIMING_MORE: "more", TIMING_SAME: "same"}

UNKNOWN_SESSION = "Unknown Session"
WORD_CLOUD_LIMIT = 50
SENTIMENTS = ("positive", "negative", "neutral")

STOP_WORDS = {
    "a", "about", "above", "after", "again", "against", "all", "am", "an", "and", "any", "are", "aren't", "as", "at",
    "be", "because", "been", "before", "being", "below", "between", "both", "but", "by",
    "can", "can't", "cannot", "could", "couldn't", "did", "didn't", "do", "does", "doesn't", "doing", "don't", "down", "during",
    "each", "few", "for", "from", "further", "had", "hadn't", "has", "hasn't", "have", "haven't", "having",
    "he", "he'd", "he'll", "he's", "her", "here", "here's", "hers", "herself", "him", "himself", "his", "how", "how's",
    "i", "i'd", "i'll", "i'm", "i've", "if", "in", "into", "is", "isn't", "it", "it's", "its", "itself",
    "let's", "me", "more", "most", "mustn't", "my", "myself",
    "no", "nor", "not", "of", "off", "on", "once", "only", "or", "other", "ought", "our", "ours", "ourselves", "out", "over", "own",
    "particularly",
    "same", "shan't", "she", "she'd", "she'll", "she's", "should", "shouldn't", "so", "some", "such",
    "than", "that", "that's", "the", "their", "theirs", "them", "themselves", "then", "there", "there's", "these",
    "they", "they'd", "they'll", "they're", "they've", "this", "those", "through", "to", "too",
    "under", "until", "up", "very", "was", "wasn't", "we", "we'd", "we'll", "we're", "we've", "were", "weren't",
    "what", "what's", "when", "when's", "where", "where's", "which", "while", "who", "who's", "whom", "why", "why's",
    "with", "won't", "would", "wouldn't",
    "you", "you'd", "you'll", "you're", "you've", "your", "yours", "yourself", "yourselves",
    # Words that dominate course feedback without saying much
    "n/a", "na", "-", "module", "session", "also", "get", "bit", "lot", "really", "think", "will", "well", "much",
    "good", "great", "like", "feel", "found", "quite", "especially", "content", "learn", "learning",
    "understand", "understanding", "week", "section", "studies", "study", "course",
}

SENTIMENT_SYSTEM_PROMPT = """
You are a sentiment analysis assistant. You will receive a JSON list of words.
Analyze each word individually in the context of general student feedback (e.g., about courses, teaching, materials).
Determine if each word typically carries a 'positive', 'negative', or 'neutral' sentiment in that context.
Respond ONLY with a single, valid JSON object.
The keys of the JSON object MUST be the exact words from the input list.
The values MUST be one of the strings: "positive", "negative", or "neutral".
""".strip()

SUMMARY_SYSTEM_PROMPT = """
You are an expert academic feedback analyst. Your task is to process student feedback comments provided for different course sessions.
For EACH session provided in the input:
1. Write a brief, neutral summary paragraph (2-3 sentences) capturing the main themes of the feedback for that session.
2. List in 'positiveComments' the comments that express satisfaction, enjoyment, or highlight strengths.
3. List in 'criticalComments' the comments that express dissatisfaction, confusion, constructive criticism, or suggest changes.

Every comment must be reproduced verbatim and placed in exactly one of the two lists; neutral comments go in 'positiveComments'.
Respond with a single JSON object whose keys are the session names from the input. Each value must be:
{"summary": "string", "positiveComments": ["string"], "criticalComments": ["string"]}
Do not include any text outside the JSON object.
""".strip()


class SessionData:
    def __init__(self) -> None:
        self.comments: List[str] = []
        self.timing_counts: Dict[str, int] = {"less": 0, "more": 0, "same": 0}
        # [{"loHeader": str, "responses": {answer: count}}]
        self.learning_outcomes: List[Dict[str, Any]] = []
        self.parsing_info: Dict[str, Any] = {
            "foundStudentId": False,
            "foundTiming": False,
            "foundFeedback": False,
            "loColumnsIdentified": 0,
        }

    def has_data(self) -> bool:
        return bool(self.comments) or any(self.timing_counts.values()) or bool(self.learning_outcomes)


class FeedbackBatch:
    """Accumulates every uploaded file, keyed by session name."""

    def __init__(self) -> None:
        self.sessions: Dict[str, SessionData] = {}
        self.warnings: List[str] = []
        self.all_comments: List[str] = []

    def add_file(self, filename: str, content: bytes, content_type: Optional[str] = None) -> None:
        if content_type != "text/csv" and not filename.lower().endswith(".csv"):
            self.warnings.append(f'Skipped non-CSV file: "{filename}". Only .csv files are accepted.')
            return
        session = self.sessions.setdefault(session_name(filename), SessionData())
        text = content.decode("utf-8-sig", errors="replace")
        if not text.strip():
            self.warnings.append(f'File "{filename}" is empty or unreadable.')
            return
        try:
            self._parse(filename, text, session)
        except csv.Error as e:
            self.warnings.append(f'Failed to process file "{filename}": {e}')

    def _parse(self, filename: str, text: str, session: SessionData) -> None:
        reader = csv.reader(io.StringIO(text))
        headers = [h.strip() for h in next(reader, [])]
        if not any(headers):
            self.warnings.append(f'Could not parse headers for file "{filename}". Skipping file.')
            return

        info = session.parsing_info
        student_idx = _index_of(headers, STUDENT_ID_HEADER)
        timing_idx = _index_of(headers, TIMING_COLUMN_HEADER)
        feedback_idx = _index_of(headers, FEEDBACK_COLUMN_HEADER)
        info["foundStudentId"] = student_idx != -1
        info["foundTiming"] = timing_idx != -1
        info["foundFeedback"] = feedback_idx != -1

        lo_indices: List[int] = []
        if student_idx != -1 and timing_idx != -1 and student_idx < timing_idx:
            lo_indices = list(range(student_idx + 1, timing_idx))
            info["loColumnsIdentified"] = len(lo_indices)
            session.learning_outcomes = [
                {"loHeader": clean_outcome_header(headers[i]), "responses": {}} for i in lo_indices
            ]
            if not lo_indices:
                self.warnings.append(
                    f'No columns found between "{STUDENT_ID_HEADER}" and "{TIMING_COLUMN_HEADER}" in "{filename}" for Learning Outcomes.'
                )
        else:
            self.warnings.append(
                f'Could not identify Learning Outcome columns in "{filename}". Requires both "{STUDENT_ID_HEADER}" '
                f'and "{TIMING_COLUMN_HEADER}" columns, in that order.'
            )

        if not info["foundFeedback"]:
            self.warnings.append(
                f"File \"{filename}\" missing required column: '{FEEDBACK_COLUMN_HEADER}'. Feedback comments cannot be processed."
            )
        if not info["foundTiming"]:
            self.warnings.append(f"File \"{filename}\" missing column: '{TIMING_COLUMN_HEADER}'. Timing data cannot be processed.")
        if not info["foundStudentId"]:
            self.warnings.append(
                f"File \"{filename}\" missing column: '{STUDENT_ID_HEADER}'. Learning Outcome data cannot be reliably identified."
            )

        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            if feedback_idx != -1:
                comment = _cell(row, feedback_idx)
                if comment and comment.lower() not in OMIT_COMMENT_STRINGS:
                    session.comments.append(comment)
                    self.all_comments.append(comment)
            if timing_idx != -1:
                key = _TIMING_KEYS.get(_cell(row, timing_idx))
                if key:
                    session.timing_counts[key] += 1
            for position, column in enumerate(lo_indices):
                answer = _cell(row, column)
                if answer:
                    responses = session.learning_outcomes[position]["responses"]
                    responses[answer] = responses.get(answer, 0) + 1

    def usable_sessions(self) -> List[str]:
        return [name for name, data in self.sessions.items() if data.has_data()]


def _index_of(headers: List[str], name: str) -> int:
    try:
        return headers.index(name)
    except ValueError:
        return -1


def _cell(row: List[str], index: int) -> str:
    return row[index].strip() if index < len(row) else ""


def session_name(filename: str) -> str:
    match = re.match(r"^(Session\s*\d+)", filename, re.IGNORECASE)
    if match:
        return re.sub(r"\s+", " ", match.group(1)).strip()
    if filename.lower().endswith(".csv"):
        base = filename[:-4]
        if base.strip() and not re.fullmatch(r"[0-9]+", base):
            return base.strip()
    return UNKNOWN_SESSION


def clean_outcome_header(header: str) -> str:
    cleaned = header.strip()
    if cleaned.endswith('.\\"'):
        cleaned = cleaned[:-3]
    if cleaned.endswith("\\."):
        cleaned = cleaned[:-2]
    for quote in ('"', "'"):
        if len(cleaned) >= 2 and cleaned.startswith(quote) and cleaned.endswith(quote):
            cleaned = cleaned[1:-1]
    return cleaned.strip()


def build_word_cloud(comments: List[str], limit: int = WORD_CLOUD_LIMIT) -> List[Dict[str, Any]]:
    text = " ".join(comments).lower().replace("’", "'")
    text = re.sub(r"[^a-z'\s-]", "", text)
    counts: Counter = Counter(
        word for word in text.split() if len(word) > 2 and word not in STOP_WORDS
    )
    return [{"value": word, "count": count} for word, count in counts.most_common(limit)]


def apply_sentiment(word_cloud: List[Dict[str, Any]], sentiments: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Anything missing or unexpected is shown as neutral
    sentiments = sentiments or {}
    out = []
    for tag in word_cloud:
        value = sentiments.get(tag["value"])
        out.append({**tag, "sentiment": value if value in SENTIMENTS else "neutral"})
    return out


def build_sentiment_prompt(word_cloud: List[Dict[str, Any]]) -> str:
    return json.dumps([tag["value"] for tag in word_cloud])


def build_summary_prompt(batch: FeedbackBatch, names: List[str]) -> Optional[str]:
    parts = ["Please analyze the following student feedback comments grouped by session, following all instructions precisely:\n"]
    sent = 0
    for name in names:
        comments = batch.sessions[name].comments
        if not comments:
            continue
        parts.append(f"--- {name} ---")
        parts.extend(f"- {c}" for c in comments)
        parts.append("")
        sent += 1
    if not sent:
        return None
    return "\n".join(parts)


def merge_results(batch: FeedbackBatch, names: List[str], analysis: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    analysis = analysis or {}
    any_comments = any(batch.sessions[name].comments for name in names)
    results: Dict[str, Any] = {}
    for name in names:
        data = batch.sessions[name]
        entry = analysis.get(name)
        if not isinstance(entry, dict):
            if not any_comments:
                summary = "No non-trivial comments provided for AI analysis."
            elif data.comments:
                summary = "AI analysis not available."
            else:
                summary = "No comments provided."
            entry = {"summary": summary, "positiveComments": [], "criticalComments": []}
        results[name] = {
            "summary": str(entry.get("summary", "")),
            "positiveComments": list(entry.get("positiveComments") or []),
            "criticalComments": list(entry.get("criticalComments") or []),
            "timingCounts": dict(data.timing_counts),
            "learningOutcomes": data.learning_outcomes,
        }
    return results
