# hrflow/metrics.py
from prometheus_client import Counter

# === Workflow metrics (definitions ONLY here) ===
requests_created_total = Counter(
    "hr_requests_created_total", "HR requests created", ["kind"]
)

decisions_total = Counter(
    "hr_decisions_total", "Committed stage decisions", ["stage", "decision"]
)

decisions_rejected_total = Counter(
    "hr_decisions_rejected_total", "Decide calls rejected before commit", ["error"]
)

decision_conflicts_total = Counter(
    "hr_decision_conflicts_total", "Decide calls that lost a concurrent transition race"
)

exports_total = Counter(
    "hr_exports_total", "Exported request documents"
)

def init_metrics_zero():
    # create label combos at 0 so dashboards never see "no data"
    for k in ("leave", "advance", "other"):
        requests_created_total.labels(kind=k).inc(0)
    for s in ("sales_manager", "hr_manager"):
        for d in ("approved", "rejected"):
            decisions_total.labels(stage=s, decision=d).inc(0)
    for e in ("validation", "not_found", "forbidden", "state", "conflict"):
        decisions_rejected_total.labels(error=e).inc(0)
    decision_conflicts_total.inc(0)
    exports_total.inc(0)
