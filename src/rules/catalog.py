"""Default rule catalog — OS, Puppet, Ganglia and application thresholds."""

from __future__ import annotations

from src.core.types import Severity
from src.rules.types import (
    AuxLookup,
    Comparison,
    FieldMatch,
    Ladder,
    MatchKind,
    MetricTransform,
    Outcome,
    RatioSpec,
    RuleDescriptor,
    Rung,
    WindowSpec,
)
from src.stream.window import Fold, WindowKind


def _eq(field: str, value: str) -> FieldMatch:
    return FieldMatch(field=field, value=value)


def _service(name: str) -> FieldMatch:
    return _eq("service", name)


def _ec2_prod(service: FieldMatch, *extra: FieldMatch) -> list[FieldMatch]:
    return [_eq("grid", "EC2"), _eq("environment", "PROD"), *extra, service]


def _ladder(
    *rungs: tuple[float, Severity, str],
    otherwise: tuple[Severity, str] | None = None,
    comparison: Comparison = Comparison.GT,
) -> Ladder:
    return Ladder(
        comparison=comparison,
        rungs=[Rung(bound=b, severity=s, message=m) for b, s, m in rungs],
        otherwise=Outcome(severity=otherwise[0], message=otherwise[1]) if otherwise else None,
    )


_CLUSTER_DEDUP = ["resource", "service"]
_GRID_DEDUP = ["grid", "service"]

DEFAULT_RULES: list[RuleDescriptor] = [
    RuleDescriptor(
        name="boot_time",
        match=[_service("boottime")],
        event_name="SystemStart",
        group="System",
        transform=MetricTransform.ELAPSED,
        ladder=_ladder(
            (7200, Severity.INFORMATIONAL, "System started less than 2 hours ago"),
            comparison=Comparison.LT,
        ),
    ),
    RuleDescriptor(
        name="ganglia_heartbeat",
        match=[_service("heartbeat")],
        event_name="GangliaHeartbeat",
        group="Ganglia",
        count=2,
        ladder=_ladder(
            (90, Severity.CRITICAL, "No heartbeat from Ganglia agent for at least 90 seconds"),
            otherwise=(Severity.NORMAL, "Heartbeat from Ganglia agent OK"),
        ),
    ),
    RuleDescriptor(
        name="puppet_last_run",
        match=[_service("pup_last_run")],
        event_name="PuppetLastRun",
        group="Puppet",
        transform=MetricTransform.ELAPSED,
        ladder=_ladder(
            (7200, Severity.MAJOR, "Puppet agent has not run for at least 2 hours"),
            otherwise=(Severity.NORMAL, "Puppet agent is OK"),
        ),
    ),
    RuleDescriptor(
        name="puppet_resources_failed",
        match=[_service("pup_res_failed")],
        event_name="PuppetResFailed",
        group="Puppet",
        ladder=_ladder(
            (0, Severity.WARNING, "Puppet resources are failing"),
            otherwise=(Severity.NORMAL, "Puppet is updating all resources"),
        ),
    ),
    RuleDescriptor(
        name="guardian_metric_collection",
        match=[_service("gu_metric_last")],
        event_name="GuMgmtMetrics",
        group="Ganglia",
        transform=MetricTransform.ELAPSED,
        ladder=_ladder(
            (
                300,
                Severity.MINOR,
                "Guardian management status metrics have not been updated for more than 5 minutes",
            ),
            otherwise=(Severity.NORMAL, "Guardian management status metrics are OK"),
        ),
    ),
    RuleDescriptor(
        name="fs_util",
        match=[_service("fs_util")],
        event_name="FsUtil",
        group="OS",
        ladder=_ladder(
            (95, Severity.CRITICAL, "File system utilisation is very high"),
            (90, Severity.MAJOR, "File system utilisation is high"),
            otherwise=(Severity.NORMAL, "File system utilisation is OK"),
        ),
    ),
    RuleDescriptor(
        name="inode_util",
        match=[_service("inode_util")],
        event_name="InodeUtil",
        group="OS",
        ladder=_ladder(
            (95, Severity.CRITICAL, "File system inode utilisation is very high"),
            (90, Severity.MAJOR, "File system inode utilisation is high"),
            otherwise=(Severity.NORMAL, "File system inode utilisation is OK"),
        ),
    ),
    RuleDescriptor(
        name="swap_util",
        match=[_service("swap_util")],
        event_name="SwapUtil",
        group="OS",
        ladder=_ladder(
            (90, Severity.MINOR, "Swap utilisation is very high"),
            otherwise=(Severity.NORMAL, "Swap utilisation is OK"),
        ),
    ),
    # Bounds are multiples of the host's CPU count.
    RuleDescriptor(
        name="cpu_load_five",
        match=[_service("load_five")],
        event_name="LoadAverage",
        group="OS",
        aux=AuxLookup(service="cpu_num"),
        ladder=_ladder(
            (6, Severity.CRITICAL, "System 5-minute load average is very high"),
            (4, Severity.MAJOR, "System 5-minute load average is high"),
            otherwise=(Severity.NORMAL, "System 5-minute load average is OK"),
        ),
    ),
    RuleDescriptor(
        name="volume_util",
        match=[_service("df_percent-kb-capacity")],
        event_name="VolumeUsage",
        group="netapp",
        ladder=_ladder(
            (90, Severity.CRITICAL, "Volume utilisation is very high"),
            (85, Severity.MAJOR, "Volume utilisation is high"),
            otherwise=(Severity.NORMAL, "Volume utilisation is OK"),
        ),
    ),
    RuleDescriptor(
        name="r2frontend_response_time",
        match=[
            _service("gu_requests_timing_time-r2frontend"),
            FieldMatch(field="host", value="respub", kind=MatchKind.REGEX),
        ],
        event_name="ResponseTime",
        group="Web",
        debounce=4,
        ladder=_ladder(
            (500, Severity.MINOR, "R2 response time is slow"),
            otherwise=(Severity.NORMAL, "R2 response time is OK"),
        ),
    ),
    RuleDescriptor(
        name="r2frontend_cluster_response_time",
        match=[
            _service("gu_requests_timing_time-r2frontend"),
            FieldMatch(field="host", value="respub", kind=MatchKind.REGEX),
        ],
        event_name="ResponseTime",
        group="Web",
        window=WindowSpec(
            kind=WindowKind.SLIDING,
            span_secs=30,
            fold=Fold.MEAN,
            group_by=["cluster"],
            resource_from_group=True,
        ),
        dedup_by=_CLUSTER_DEDUP,
        debounce=4,
        ladder=_ladder(
            (400, Severity.MINOR, "R2 response time for cluster is slow"),
            otherwise=(Severity.NORMAL, "R2 response time for cluster is OK"),
        ),
    ),
    RuleDescriptor(
        name="r2frontend_db_response_time",
        match=[_service("gu_database_calls_time-r2frontend")],
        event_name="DbResponseTime",
        group="Database",
        debounce=2,
        ladder=_ladder(
            (30, Severity.MINOR, "R2 database response time is slow"),
            otherwise=(Severity.NORMAL, "R2 database response time is OK"),
        ),
    ),
    # At least 100 requests are expected per 15-minute window.
    RuleDescriptor(
        name="ios_purchases_request_rate",
        match=_ec2_prod(_service("gu_200_ok_request_status_rate-ios-purchases-api")),
        event_name="RequestRate",
        group="Application",
        grid="iOSPurchasesAPI",
        window=WindowSpec(kind=WindowKind.SLIDING, span_secs=900, fold=Fold.SUM, group_by=[]),
        dedup_by=_GRID_DEDUP,
        ladder=_ladder(
            (100, Severity.NORMAL, "Normal request rate for ios-purchases"),
            otherwise=(Severity.MINOR, "Unusually low request rate for ios-purchases"),
        ),
    ),
    RuleDescriptor(
        name="ios_purchases_5xx_percent",
        match=_ec2_prod(
            FieldMatch(
                field="service",
                value=r"gu_.*?_request_status_rate-ios-purchases-api",
                kind=MatchKind.REGEX,
            ),
        ),
        event_name="%500s",
        group="Application",
        grid="iOSPurchasesAPI",
        ratio=RatioSpec(
            numerator=[_service("gu_50x_error_request_status_rate-ios-purchases-api")],
            span_secs=900,
            scale=100.0,
            latest_per_key=True,
            service="ios_purchases_5xx_percent",
        ),
        dedup_by=_GRID_DEDUP,
        debounce=2,
        ladder=_ladder(
            (1, Severity.NORMAL, "Normal % 500s for ios-purchases"),
            (5, Severity.MINOR, "Moderate % 500s for ios-purchases"),
            otherwise=(Severity.MAJOR, "High % 500s for ios-purchases"),
            comparison=Comparison.LT,
        ),
    ),
    RuleDescriptor(
        name="discussion_api_cluster_response_time",
        match=[
            _eq("grid", "Discussion"),
            _service("gu_httprequests_application_time-DiscussionApi"),
        ],
        event_name="ResponseTime",
        group="Web",
        window=WindowSpec(
            kind=WindowKind.SLIDING,
            span_secs=300,
            fold=Fold.MEAN,
            group_by=["cluster"],
            resource_from_group=True,
        ),
        dedup_by=_CLUSTER_DEDUP,
        debounce=2,
        ladder=_ladder(
            (100, Severity.MINOR, "Discussion API cluster response time is slow"),
            otherwise=(Severity.NORMAL, "Discussion API cluster response time is OK"),
        ),
    ),
    RuleDescriptor(
        name="content_api_host_item_response_time",
        match=_ec2_prod(_service("gu_item_http_time-Content-API")),
        event_name="HostItemResponseTime",
        group="Application",
        grid="ContentAPI",
        window=WindowSpec(kind=WindowKind.SLIDING, span_secs=300, fold=Fold.MEAN, group_by=["resource"]),
        dedup_by=_CLUSTER_DEDUP,
        ladder=_ladder(
            (300, Severity.MAJOR, "Content API host item response time is slow"),
            otherwise=(Severity.NORMAL, "Content API host item response time is OK"),
        ),
    ),
    RuleDescriptor(
        name="content_api_host_search_response_time",
        match=_ec2_prod(_service("gu_search_http_time-Content-API")),
        event_name="HostSearchResponseTime",
        group="Application",
        grid="ContentAPI",
        window=WindowSpec(kind=WindowKind.SLIDING, span_secs=300, fold=Fold.MEAN, group_by=["resource"]),
        dedup_by=_CLUSTER_DEDUP,
        ladder=_ladder(
            (200, Severity.MAJOR, "Content API host search response time is slow"),
            otherwise=(Severity.NORMAL, "Content API host search response time is OK"),
        ),
    ),
    RuleDescriptor(
        name="content_api_mq_response_time",
        match=_ec2_prod(
            _service("gu_httprequests_application_time-Content-API"),
            _eq("cluster", "contentapimq_eu-west-1"),
        ),
        event_name="ResponseTime",
        group="Application",
        grid="ContentAPI",
        window=WindowSpec(
            kind=WindowKind.SLIDING,
            span_secs=30,
            fold=Fold.MEAN,
            group_by=["cluster"],
            resource_from_group=True,
        ),
        dedup_by=_CLUSTER_DEDUP,
        debounce=2,
        ladder=_ladder(
            (300, Severity.MAJOR, "Content API MQ cluster response time is slow"),
            otherwise=(Severity.NORMAL, "Content API MQ cluster response time is OK"),
        ),
    ),
    RuleDescriptor(
        name="content_api_mq_request_rate",
        match=_ec2_prod(
            _service("gu_httprequests_application_rate-Content-API"),
            _eq("cluster", "contentapimq_eu-west-1"),
        ),
        event_name="MQRequestRate",
        group="Application",
        grid="ContentAPI",
        window=WindowSpec(
            kind=WindowKind.FIXED,
            span_secs=15,
            fold=Fold.SUM,
            group_by=["cluster"],
            resource_from_group=True,
        ),
        dedup_by=_CLUSTER_DEDUP,
        debounce=2,
        ladder=_ladder(
            (70, Severity.NORMAL, "Content API MQ total request rate is OK"),
            otherwise=(Severity.MAJOR, "Content API MQ total request rate is low"),
        ),
    ),
    RuleDescriptor(
        name="frontend_js_error_ratio",
        event_name="JsErrorRate",
        group="Frontend",
        ratio=RatioSpec(
            numerator=[_service("gu_js_diagnostics_rate-frontend-diagnostics")],
            denominator=[
                FieldMatch(
                    field="service",
                    value="gu_200_ok_request_status_rate-frontend-",
                    kind=MatchKind.PREFIX,
                ),
            ],
            span_secs=60,
            group_by=["environment"],
            require_both=True,
            host="riemann",
            service="frontend_js_error_ratio",
            resource_field="grid",
        ),
        dedup_by=["environment", "service"],
        debounce=4,
        ladder=_ladder(
            (0.10, Severity.MAJOR, "JS error rate unexpectedly high"),
            otherwise=(Severity.NORMAL, "JS error rate within limits"),
        ),
    ),
]


def default_rules() -> list[RuleDescriptor]:
    """Fresh copies of the built-in rules."""
    return [rule.model_copy(deep=True) for rule in DEFAULT_RULES]
