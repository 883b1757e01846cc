"""Analysis client — LLM audit of ad performance data and report prose."""

import json
import logging
from typing import Optional, Dict, Any, List

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, Field

from adaudit.core.config import settings
from adaudit.core.exceptions import AnalysisError, ReportGenerationError

logger = logging.getLogger("adaudit")

ANALYST_SYSTEM_PROMPT = (
    "You are an expert digital advertising analyst. Analyze the provided advertising "
    "data and provide actionable insights and recommendations. Always respond with "
    "valid JSON in the specified format."
)

ANALYSIS_PROMPT = """Please analyze the following advertising data from {platform} and provide a comprehensive audit report.

Data to analyze:
{data}

Please provide your analysis in the following JSON format:
{{
  "summary": "Brief overview of the account performance",
  "keyInsights": ["insight 1", "insight 2", "insight 3"],
  "recommendations": ["recommendation 1", "recommendation 2", "recommendation 3"],
  "performanceMetrics": [
    {{
      "metric": "Metric name",
      "value": "Metric value",
      "status": "good|warning|poor"
    }}
  ],
  "score": 85
}}

Focus on:
- Campaign performance and optimization opportunities
- Budget allocation and efficiency
- Audience targeting effectiveness
- Creative performance insights
- Overall account health score (0-100)"""

REPORT_PROMPT = """Generate a professional advertising audit report in {report_format} format for the {platform} account "{account_name}".

Analysis Results:
{analysis}

Please format this as a comprehensive audit report suitable for {report_format}. Include:
- Executive Summary
- Key Performance Insights
- Detailed Recommendations
- Performance Metrics Analysis
- Action Plan

Keep the tone professional and actionable."""

METRIC_STATUSES = ("good", "warning", "poor")


class PerformanceMetric(BaseModel):
    metric: str
    value: str
    status: str = "warning"


class AnalysisResult(BaseModel):
    summary: str = ""
    keyInsights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    performanceMetrics: List[PerformanceMetric] = Field(default_factory=list)
    score: int = 0


def clamp_score(raw: Any) -> int:
    """Coerce a model-supplied score into [0, 100]; unusable values become 0."""
    try:
        score = float(raw)
    except (TypeError, ValueError):
        return 0
    if score != score:  # NaN
        return 0
    return int(round(max(0.0, min(100.0, score))))


def _string_list(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    return [str(item) for item in raw if item is not None]


def _metrics(raw: Any) -> List[PerformanceMetric]:
    if not isinstance(raw, list):
        return []
    metrics = []
    for item in raw:
        if not isinstance(item, dict) or "metric" not in item:
            continue
        status = str(item.get("status", "")).lower()
        metrics.append(PerformanceMetric(
            metric=str(item["metric"]),
            value=str(item.get("value", "")),
            status=status if status in METRIC_STATUSES else "warning",
        ))
    return metrics


def normalize_analysis(payload: Dict[str, Any]) -> AnalysisResult:
    """Fill defaults and clamp the score of a parsed model response."""
    return AnalysisResult(
        summary=str(payload.get("summary") or "Analysis completed"),
        keyInsights=_string_list(payload.get("keyInsights")),
        recommendations=_string_list(payload.get("recommendations")),
        performanceMetrics=_metrics(payload.get("performanceMetrics")),
        score=clamp_score(payload.get("score")),
    )


class AnalysisClient:
    """Wraps the chat-completions endpoint used for audits.

    Nothing is retried; every failure surfaces as AnalysisError or
    ReportGenerationError and fails the parent audit.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key or settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise AnalysisError("OPENAI_API_KEY is not configured")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def analyze(self, platform: str, account_data: Dict[str, Any]) -> AnalysisResult:
        """Ask the model for a structured audit of ``account_data``."""
        prompt = ANALYSIS_PROMPT.format(
            platform=platform,
            data=json.dumps(account_data, indent=2, default=str),
        )
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": ANALYST_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.3,
            )
            content = response.choices[0].message.content or ""
            payload = json.loads(content)
        except (OpenAIError, json.JSONDecodeError, IndexError) as e:
            logger.error("Analysis call failed for %s: %s", platform, e)
            raise AnalysisError("analysis failed")

        if not isinstance(payload, dict):
            logger.error("Analysis response for %s is not a JSON object", platform)
            raise AnalysisError("analysis failed")
        return normalize_analysis(payload)

    def render_report(
        self,
        analysis: AnalysisResult,
        platform: str,
        account_name: str,
        report_format: str,
    ) -> str:
        """Turn an analysis into report prose labelled for ``report_format``."""
        prompt = REPORT_PROMPT.format(
            report_format=report_format,
            platform=platform,
            account_name=account_name,
            analysis=json.dumps(analysis.model_dump(), indent=2),
        )
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": (
                            "You are a professional marketing consultant creating audit reports. "
                            f"Generate a well-structured report in {report_format} format."
                        ),
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=0.2,
            )
            content = response.choices[0].message.content
        except (OpenAIError, IndexError) as e:
            logger.error("Report generation failed for %s: %s", platform, e)
            raise ReportGenerationError("report generation failed")

        if not content or not content.strip():
            raise ReportGenerationError("report generation failed")
        return content


def get_analysis_client() -> AnalysisClient:
    """Factory used by the audit task; tests monkeypatch this."""
    return AnalysisClient()
