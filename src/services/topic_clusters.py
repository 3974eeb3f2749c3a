"""Keyword co-occurrence graph for topic clustering.

Nodes are keywords used by at least two videos (top N by frequency), colored
and grouped by the niche they appear in most. Edges connect node keywords
that appear together in the same video.
"""

import logging
import math
import re
from itertools import combinations
from typing import Dict, Iterable, List, Optional

from models.cluster import ClusterEdge, ClusterNode, KeywordStat, TopicClusterResult
from models.video import VideoRecord

logger = logging.getLogger(__name__)

NICHE_COLORS = {
    "programming": "#4caf50",
    "gaming": "#ff5722",
    "technology": "#9c27b0",
    "education": "#2196f3",
    "entertainment": "#ffc107",
    "lifestyle": "#03a9f4",
    "beauty": "#e91e63",
    "fitness": "#8bc34a",
    "food": "#ff9800",
    "music": "#3f51b5",
    "news": "#607d8b",
    "sports": "#009688",
    "travel": "#cddc39",
    "fashion": "#ff4081",
    "unknown": "#9e9e9e",
}
DEFAULT_COLOR = "#9e9e9e"

MIN_NODE_SIZE = 10
MAX_NODE_SIZE = 30

_PUNCTUATION = re.compile(r"[^\w\s]")


def title_terms(title: str) -> List[str]:
    """Title words longer than 3 characters plus bigrams of those words."""
    words = [w for w in _PUNCTUATION.sub("", (title or "").lower()).split() if len(w) > 3]
    bigrams = [f"{first} {second}" for first, second in zip(words, words[1:])]
    return words + bigrams


class TopicClusterBuilder:
    """Builds a bounded keyword co-occurrence graph from stored videos."""

    def __init__(
        self,
        min_videos: int = 2,
        max_nodes: int = 50,
        niche_colors: Optional[Dict[str, str]] = None,
    ):
        self.min_videos = min_videos
        self.max_nodes = max_nodes
        self.niche_colors = niche_colors or NICHE_COLORS

    @staticmethod
    def video_terms(record: VideoRecord) -> List[str]:
        """Unique terms for one video: stored keywords first, then title terms."""
        terms = [kw.strip().lower() for kw in record.keywords if len(kw.strip()) > 3]
        terms.extend(title_terms(record.title))
        return list(dict.fromkeys(terms))

    def keyword_stats(self, records: Iterable[VideoRecord]) -> Dict[str, KeywordStat]:
        """Per-keyword usage across the corpus, in first-seen order."""
        stats: Dict[str, KeywordStat] = {}
        for record in records:
            if not record.title:
                continue
            niche = record.niche or "unknown"
            for term in self.video_terms(record):
                stat = stats.setdefault(term, KeywordStat(keyword=term))
                stat.count += 1
                stat.video_ids.add(record.video_id)
                stat.niches[niche] = stat.niches.get(niche, 0) + 1
        return stats

    def top_keywords(self, stats: Dict[str, KeywordStat]) -> List[KeywordStat]:
        frequent = [s for s in stats.values() if s.video_count >= self.min_videos]
        frequent.sort(key=lambda s: s.count, reverse=True)
        return frequent[: self.max_nodes]

    @staticmethod
    def node_size(count: int) -> float:
        return max(MIN_NODE_SIZE, min(MAX_NODE_SIZE, MIN_NODE_SIZE + count / 5))

    @staticmethod
    def edge_value(count_a: int, count_b: int) -> int:
        return min(5, max(1, math.floor((count_a + count_b) / 50)))

    @staticmethod
    def edge_width(value: int) -> int:
        return min(3, max(1, math.floor(value / 2)))

    def build_nodes(self, top: List[KeywordStat]) -> List[ClusterNode]:
        """One node per keyword; node ids run niche group by niche group."""
        by_niche: Dict[str, List[KeywordStat]] = {}
        for stat in top:
            by_niche.setdefault(stat.top_niche, []).append(stat)

        nodes: List[ClusterNode] = []
        for group_id, (niche, stats) in enumerate(by_niche.items(), start=1):
            color = self.niche_colors.get(niche, DEFAULT_COLOR)
            for stat in stats:
                nodes.append(
                    ClusterNode(
                        node_id=len(nodes) + 1,
                        label=stat.keyword,
                        size=self.node_size(stat.count),
                        color=color,
                        group=group_id,
                        niche=niche,
                        count=stat.count,
                    )
                )
        return nodes

    def build_edges(self, records: Iterable[VideoRecord], nodes: List[ClusterNode]) -> List[ClusterEdge]:
        """Connect node keywords that co-occur in a video's title or keywords."""
        edges: Dict[str, ClusterEdge] = {}
        for record in records:
            title = (record.title or "").lower()
            keywords = [kw.lower() for kw in record.keywords]
            matched = [
                node for node in nodes
                if node.label in title or any(node.label in kw for kw in keywords)
            ]
            for first, second in combinations(matched, 2):
                low, high = sorted((first.node_id, second.node_id))
                pair_id = f"{low}-{high}"
                edge = edges.get(pair_id)
                if edge is not None:
                    edge.weight += 1
                    continue
                value = self.edge_value(first.count, second.count)
                edges[pair_id] = ClusterEdge(
                    source=first.node_id,
                    target=second.node_id,
                    value=value,
                    width=self.edge_width(value),
                )
        return list(edges.values())

    def build(self, records: Iterable[VideoRecord]) -> TopicClusterResult:
        records = [r for r in records if r.title]
        stats = self.keyword_stats(records)
        top = self.top_keywords(stats)
        nodes = self.build_nodes(top)
        edges = self.build_edges(records, nodes)
        logger.info(
            f"Topic clusters: {len(nodes)} nodes, {len(edges)} edges from {len(records)} videos"
        )
        return TopicClusterResult(
            nodes=nodes,
            edges=edges,
            keywords=top,
            videos_analyzed=len(records),
        )
