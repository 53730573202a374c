"""
Fuzzy topic search across recent earnings-call transcripts.

Answers "what has company X said about topic Y (optionally by speaker Z) over the last N
quarters" while keeping the output small enough to hand to a token-budgeted LLM:

1. expand the topic into related keywords with an auxiliary JSON completion (best effort);
2. list each company's transcript dates and keep the first ``lookback_quarters`` of them;
3. fetch each transcript, split it into paragraphs and fuzzy-match the expanded keywords;
4. attach neighbouring context and a speaker to every match;
5. pool, rank and truncate the matches (per transcript, then globally).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
)

from rapidfuzz import fuzz

from finsight.agent.prompts import TOPIC_EXPANSION_SYSTEM_PROMPT
from finsight.config import Settings, settings
from finsight.tools.arguments import SearchTranscriptsArgs

if TYPE_CHECKING:  # pragma: no cover
    from finsight.agent.planner_interface import BasePlanner
    from finsight.data.fmp_client import FMPClient

logger = logging.getLogger(__name__)

_SPEAKER_RE = re.compile(r"^([A-Z][a-zA-Z\s.,'-]+?):")
TRANSCRIPT_DATES_ENDPOINT = "/earning-call-transcript-dates"
TRANSCRIPT_ENDPOINT = "/earning-call-transcript"


@dataclass(frozen=True)
class SearchTuning:
    """Product-tuning constants for the transcript scan."""

    match_threshold: float = 0.3  # normalised distance, 0 = exact
    min_match_length: int = 3
    min_paragraph_length: int = 50
    max_raw_matches: int = 15
    max_mentions_per_transcript: int = 8
    max_mentions: int = 15
    context_length: int = 800
    snippet_length: int = 200

    @classmethod
    def from_settings(cls, cfg: Settings) -> "SearchTuning":
        """Build the tuning from application settings."""
        return cls(
            match_threshold=cfg.TRANSCRIPT_MATCH_THRESHOLD,
            min_match_length=cfg.TRANSCRIPT_MIN_MATCH_LENGTH,
            min_paragraph_length=cfg.TRANSCRIPT_MIN_PARAGRAPH_LENGTH,
            max_raw_matches=cfg.TRANSCRIPT_MAX_RAW_MATCHES,
            max_mentions_per_transcript=cfg.TRANSCRIPT_MAX_MENTIONS_PER_TRANSCRIPT,
            max_mentions=cfg.TRANSCRIPT_MAX_MENTIONS,
            context_length=cfg.TRANSCRIPT_CONTEXT_LENGTH,
            snippet_length=cfg.TRANSCRIPT_SNIPPET_LENGTH,
        )


@dataclass(frozen=True)
class TranscriptMention:
    """One fuzzy-matched occurrence of a topic inside a transcript."""

    topic: str
    speaker: str
    context: str
    score: float  # lower is better


@dataclass(frozen=True)
class TopicExpansion:
    """Outcome of the topic-expansion call: either related topics or an error."""

    topics: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when the expansion produced usable topics."""
        return self.error is None


# ---------------------------------------------------------------------------
# Topic expansion
# ---------------------------------------------------------------------------
async def expand_topic(topic: str, llm: "BasePlanner") -> TopicExpansion:
    """Ask the language model for synonyms and related keywords of *topic*."""
    try:
        payload = await llm.complete_json(TOPIC_EXPANSION_SYSTEM_PROMPT, f'Topic: "{topic}"')
    except Exception as exc:  # pylint: disable=broad-except
        return TopicExpansion(error=f"{type(exc).__name__}: {exc}")

    topics = payload.get("topics") if isinstance(payload, dict) else None
    if not isinstance(topics, list):
        return TopicExpansion(error="response has no 'topics' array")
    return TopicExpansion(topics=tuple(str(t) for t in topics if isinstance(t, (str, int, float))))


def search_terms(topic: str, expansion: TopicExpansion) -> List[str]:
    """
    Combine *topic* with its expansion into the de-duplicated list of search terms.

    A failed expansion falls back to the original topic alone.  The original topic is always
    first; empty strings are dropped.
    """
    candidates = [topic, *expansion.topics] if expansion.ok else [topic]
    seen = set()
    terms = []
    for candidate in candidates:
        term = candidate.strip()
        if term and term.lower() not in seen:
            seen.add(term.lower())
            terms.append(term)
    return terms


# ---------------------------------------------------------------------------
# Paragraph scan
# ---------------------------------------------------------------------------
def split_paragraphs(content: str, min_length: int = 50) -> List[str]:
    """Split a transcript body into line-delimited paragraphs longer than *min_length*."""
    return [line.strip() for line in content.split("\n") if len(line.strip()) > min_length]


def _best_term(
    paragraph: str, terms: Sequence[str], tuning: SearchTuning
) -> Optional[Tuple[float, str]]:
    """Return ``(distance, term)`` of the closest term in *paragraph*, if any is close enough."""
    haystack = paragraph.lower()
    cutoff = (1.0 - tuning.match_threshold) * 100
    best: Optional[Tuple[float, str]] = None
    for term in terms:
        alignment = fuzz.partial_ratio_alignment(term.lower(), haystack, score_cutoff=cutoff)
        if alignment is None:
            continue
        # The shorter string is aligned inside the longer one; measure the matched span
        if len(term) <= len(haystack):
            matched = alignment.dest_end - alignment.dest_start
        else:
            matched = alignment.src_end - alignment.src_start
        if matched < tuning.min_match_length:
            continue
        distance = round(1.0 - alignment.score / 100.0, 6)
        if best is None or distance < best[0]:
            best = (distance, term)
    return best


def _attribute_speaker(
    paragraphs: Sequence[str], index: int, executives: Sequence[str]
) -> Optional[str]:
    """
    Work out who said ``paragraphs[index]``.

    With an executive filter, the three preceding paragraphs plus the matched one are searched for
    any of the names and ``None`` is returned when none is present.  Without a filter, a leading
    ``Name:`` label is used, defaulting to ``"Unknown"``.
    """
    if executives:
        area = "\n".join(paragraphs[max(0, index - 3) : index + 1])
        for executive in executives:
            if executive.strip() and re.search(re.escape(executive.strip()), area, re.IGNORECASE):
                return executive
        return None

    match = _SPEAKER_RE.match(paragraphs[index])
    if match and match.group(1).strip():
        return match.group(1).strip()
    return "Unknown"


def find_mentions(
    content: str,
    terms: Sequence[str],
    executives: Sequence[str] = (),
    tuning: SearchTuning = SearchTuning(),
) -> List[TranscriptMention]:
    """Scan one transcript body and return its best mentions, best first."""
    if not content or not terms:
        return []

    paragraphs = split_paragraphs(content, tuning.min_paragraph_length)
    hits: List[Tuple[float, int, str]] = []
    for index, paragraph in enumerate(paragraphs):
        best = _best_term(paragraph, terms, tuning)
        if best is not None:
            hits.append((best[0], index, best[1]))
    hits.sort(key=lambda hit: (hit[0], hit[1]))

    mentions = []
    for score, index, term in hits[: tuning.max_raw_matches]:
        speaker = _attribute_speaker(paragraphs, index, executives)
        if speaker is None:
            continue
        context = "\n".join(paragraphs[max(0, index - 1) : index + 2])
        mentions.append(
            TranscriptMention(
                topic=term,
                speaker=speaker,
                context=context[: tuning.context_length],
                score=score,
            )
        )

    mentions.sort(key=lambda m: m.score)
    return mentions[: tuning.max_mentions_per_transcript]


def _period_key(date_info: Dict[str, Any]) -> Tuple[int, int]:
    return (
        int(date_info.get("fiscalYear") or date_info.get("year") or 0),
        int(date_info.get("quarter") or 0),
    )


def _is_most_recent_first(dates: Sequence[Any]) -> bool:
    try:
        keys = [_period_key(d) for d in dates]
    except (TypeError, ValueError, AttributeError):
        return True
    return all(a >= b for a, b in zip(keys, keys[1:]))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class TranscriptSearcher:
    """Runs a multi-company transcript search against the data provider."""

    def __init__(
        self,
        fmp: "FMPClient",
        llm: "BasePlanner",
        tuning: SearchTuning | None = None,
    ) -> None:
        self._fmp = fmp
        self._llm = llm
        self._tuning = tuning or SearchTuning.from_settings(settings)

    async def _search_terms(self, topic: str) -> List[str]:
        if not topic.strip():
            return search_terms(topic, TopicExpansion())
        logger.info("Expanding search topic: '%s'", topic)
        expansion = await expand_topic(topic, self._llm)
        if not expansion.ok:
            logger.warning(
                "Topic expansion failed, continuing with original topic: %s", expansion.error
            )
        terms = search_terms(topic, expansion)
        logger.info("Search terms: %s", terms)
        return terms

    async def _scan_symbol(
        self,
        symbol: str,
        terms: Sequence[str],
        executives: Sequence[str],
        lookback_quarters: int,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return the mentions found for *symbol* and the number of transcripts analysed."""
        dates = await self._fmp.get(TRANSCRIPT_DATES_ENDPOINT, {"symbol": symbol})
        if not isinstance(dates, list) or not dates:
            logger.info("No transcript dates for %s, skipping", symbol)
            return [], 0
        if not _is_most_recent_first(dates):
            logger.warning("Transcript dates for %s are not most-recent-first", symbol)

        mentions: List[Dict[str, Any]] = []
        analysed = 0
        for date_info in dates[:lookback_quarters]:
            try:
                year = date_info.get("fiscalYear") or date_info["year"]
                quarter = date_info["quarter"]
                transcript = await self._fmp.get(
                    TRANSCRIPT_ENDPOINT, {"symbol": symbol, "year": year, "quarter": quarter}
                )
                if not (
                    isinstance(transcript, list)
                    and transcript
                    and isinstance(transcript[0], dict)
                    and transcript[0].get("content")
                ):
                    logger.info("No transcript content for %s Q%s %s", symbol, quarter, year)
                    continue

                analysed += 1
                found = find_mentions(transcript[0]["content"], terms, executives, self._tuning)
                logger.debug("%d mentions in %s Q%s %s", len(found), symbol, quarter, year)
                for mention in found:
                    mentions.append(
                        {
                            "symbol": symbol,
                            "date": transcript[0].get("date"),
                            "speaker": mention.speaker,
                            "topic": mention.topic,
                            "context": mention.context,
                            "score": mention.score,
                        }
                    )
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Error scanning transcript for %s (%s): %s", symbol, date_info, exc)
        return mentions, analysed

    async def search(self, args: SearchTranscriptsArgs) -> Dict[str, Any]:
        """
        Run the search described by *args*.

        Returns a summary dict; on an unexpected failure returns ``{"error": ..., "query": ...}``
        instead of raising.
        """
        query = {
            "symbols": list(args.symbols),
            "topic": args.topic,
            "executives": list(args.executives),
            "lookbackQuarters": args.lookback_quarters,
        }
        terms = await self._search_terms(args.topic)

        try:
            pooled: List[Dict[str, Any]] = []
            transcripts_analysed = 0
            for symbol in args.symbols:
                logger.info("Searching transcripts for %s", symbol)
                mentions, analysed = await self._scan_symbol(
                    symbol, terms, args.executives, args.lookback_quarters
                )
                pooled.extend(mentions)
                transcripts_analysed += analysed

            # Stable sort keeps company / quarter order among equal scores
            pooled.sort(key=lambda m: m["score"])
            limit = self._tuning.snippet_length
            results = [
                {
                    "symbol": m["symbol"],
                    "date": m["date"],
                    "speaker": m["speaker"],
                    "topic": m["topic"],
                    "snippet": m["context"][:limit] + "...",
                }
                for m in pooled[: self._tuning.max_mentions]
            ]
            logger.info(
                "Transcript search found %d mentions, returning %d", len(pooled), len(results)
            )
            return {
                "query": query,
                "resultsSummary": results,
                "totalMatchesFound": len(pooled),
                "companiesSearched": len(args.symbols),
                "transcriptsAnalyzed": transcripts_analysed,
                "summary": (
                    f'Found {len(pooled)} potential mentions of "{args.topic}". '
                    f"Returning the top {len(results)} most relevant snippets."
                ),
            }
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Transcript search failed")
            return {"error": f"Failed to search transcripts: {exc}", "query": query}
