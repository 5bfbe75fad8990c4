"""
Analytics reports for organizations, causes and donors.

Each report fans out its independent ledger queries concurrently and shapes
the results with the bucketing, retention and sentiment calculators. A report
is all or nothing: the first failing query, or the report deadline, cancels
the queries still running and fails the report.
"""
import asyncio
import time
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from fundraising.analytics.buckets import (
    MonthBucket,
    fill_missing_months,
    month_start,
    month_window,
    shift_months,
)
from fundraising.analytics.retention import calculate_retention, cohort_windows
from fundraising.analytics.sentiment import sentiment_from_distribution
from fundraising.core.auth import CallerIdentity, Role, can_access_organization
from fundraising.core.errors import AuthorizationError, NotFoundError, StoreUnavailableError
from fundraising.core.numeric import money, percentage, round_half_up, to_decimal
from fundraising.middleware.metrics import analytics_report_duration_seconds, analytics_reports_total
from fundraising.middleware.tracing import get_tracer
from fundraising.models import CampaignStatus, DonationStatus, DonationType, utcnow
from fundraising.schemas.analytics import (
    AverageDonationPoint,
    CauseAnalytics,
    CauseDetails,
    DashboardCampaignStats,
    DashboardCauseStats,
    DashboardDonationStats,
    DonationTypeSlice,
    DonorAnalytics,
    DonorDashboard,
    DonorMetrics,
    FeedbackSentiment,
    FundingProgress,
    MonthlyTrendPoint,
    OrganizationDashboard,
    OrganizationOverview,
    RecentCampaign,
    RecentDonation,
    RetentionReport,
    TopCause,
    TopDonor,
    YearComparison,
)
from fundraising.store.aggregation import AggregationRequest, Filter, GroupKey, Metric, SortKey, TimePart
from fundraising.store.ledger import LedgerStore

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

COUNTED = Filter.in_("status", (DonationStatus.CONFIRMED, DonationStatus.RECEIVED))
MONEY_ONLY = Filter.eq("type", DonationType.MONEY)

OVERVIEW_MONTHS = 12
CAUSE_MONTHS = 6
TOP_CAUSES = 5
TOP_DONORS = 10
DONOR_RECENT_DONATIONS = 5
ORGANIZATION_RECENT_DONATIONS = 10
RECENT_CAMPAIGNS = 5

RECENT_FIRST = (SortKey("created_at", descending=True), SortKey("id", descending=True))


def growth_rate(current: Decimal, previous: Decimal) -> float:
    """Growth from previous to current in percent, 2 decimals"""
    if previous == 0:
        return 100.0 if current != 0 else 0.0
    return percentage(current - previous, previous, places=2)


def impact_score(total_donated: Decimal, donation_count: int) -> int:
    """0..100: ten points per 1000 given plus five per counted donation"""
    score = to_decimal(total_donated) / 100 + donation_count * 5
    return min(100, int(score.to_integral_value(rounding=ROUND_FLOOR)))


def _single(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """The one row of an ungrouped aggregation"""
    return rows[0] if rows else {}


def _trend_points(buckets: List[MonthBucket]) -> List[MonthlyTrendPoint]:
    return [
        MonthlyTrendPoint(year=b.year, month=b.month, count=b.count, total=money(b.total))
        for b in buckets
    ]


def _average_points(buckets: List[MonthBucket]) -> List[AverageDonationPoint]:
    return [
        AverageDonationPoint(
            year=b.year,
            month=b.month,
            average_amount=money(b.total / b.count) if b.count else money(0),
        )
        for b in buckets
    ]


def _type_slices(rows: List[Dict[str, Any]]) -> List[DonationTypeSlice]:
    return [
        DonationTypeSlice(type=row["type"], count=row["count"], total=money(row["total"]))
        for row in rows
    ]


class AnalyticsService:
    """On-demand reports computed from the donation ledger"""

    def __init__(self, store: LedgerStore, report_timeout: Optional[float] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.report_timeout = report_timeout
        self.clock = clock

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _gather(self, report: str, **queries: Awaitable) -> Dict[str, Any]:
        """Run named queries concurrently; the first failure cancels the rest and fails the report"""
        tasks = {name: asyncio.ensure_future(query) for name, query in queries.items()}
        try:
            done, _ = await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_EXCEPTION)
        finally:
            # Also reached when the report deadline cancels us mid-wait
            unfinished = [task for task in tasks.values() if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        for name, task in tasks.items():
            if task in done and not task.cancelled() and task.exception() is not None:
                failure = task.exception()
                logger.warning("Analytics query failed", report=report, query=name,
                               error_type=type(failure).__name__, error=str(failure))
                raise failure

        return {name: task.result() for name, task in tasks.items()}

    async def _run_report(self, report: str, build: Callable[[], Awaitable[Any]]) -> Any:
        """Build a report under the report deadline, which covers every lookup the build makes"""
        started = time.perf_counter()
        with tracer.start_as_current_span(f"analytics.{report}"):
            try:
                result = await asyncio.wait_for(build(), timeout=self.report_timeout)
            except asyncio.TimeoutError:
                analytics_reports_total.labels(report=report, status="timeout").inc()
                logger.warning("Analytics report deadline exceeded", report=report,
                               timeout_seconds=self.report_timeout)
                raise StoreUnavailableError(f"Analytics report '{report}' timed out") from None
            except Exception as e:
                analytics_reports_total.labels(report=report, status="error").inc()
                logger.warning("Analytics report failed", report=report, error_type=type(e).__name__)
                raise

        duration = time.perf_counter() - started
        analytics_reports_total.labels(report=report, status="ok").inc()
        analytics_report_duration_seconds.labels(report=report).observe(duration)
        logger.info("Analytics report computed", report=report, duration_seconds=round(duration, 3))
        return result

    async def _require_organization(self, caller: CallerIdentity, organization_id: int) -> None:
        if not can_access_organization(caller, organization_id):
            raise AuthorizationError("Cannot read analytics of another organization")
        if await self.store.get("organization", organization_id) is None:
            raise NotFoundError(f"Organization {organization_id} not found")

    # ------------------------------------------------------------------
    # Query builders
    # ------------------------------------------------------------------

    @staticmethod
    def _monthly_request(scope: Filter, start: datetime, end: datetime, money_only: bool,
                         label: str) -> AggregationRequest:
        filters = [scope, COUNTED, Filter.gte("created_at", start), Filter.lt("created_at", end)]
        if money_only:
            filters.append(MONEY_ONLY)
        return AggregationRequest(
            entity="donation",
            filters=tuple(filters),
            group_by=(GroupKey("created_at", TimePart.YEAR), GroupKey("created_at", TimePart.MONTH)),
            metrics=(Metric.count(), Metric.sum("amount")),
            order_by=(SortKey("year"), SortKey("month")),
            label=label,
        )

    @staticmethod
    def _type_request(scope: Filter, label: str) -> AggregationRequest:
        return AggregationRequest(
            entity="donation",
            filters=(scope, COUNTED),
            group_by=(GroupKey("type"),),
            metrics=(Metric.count(), Metric.sum("amount")),
            order_by=(SortKey("count", descending=True), SortKey("type")),
            label=label,
        )

    @staticmethod
    def _per_donor_request(organization_id: int, money_only: bool, label: str) -> AggregationRequest:
        filters = [Filter.eq("organization_id", organization_id), COUNTED]
        if money_only:
            filters.append(MONEY_ONLY)
        return AggregationRequest(
            entity="donation",
            filters=tuple(filters),
            group_by=(GroupKey("donor_id"),),
            metrics=(
                Metric.count(),
                Metric.sum("amount"),
                Metric.min("created_at", "first_donation"),
                Metric.max("created_at", "last_donation"),
            ),
            order_by=(SortKey("total", descending=True), SortKey("donor_id")),
            label=label,
        )

    @staticmethod
    def _money_total_request(filters: List[Filter], label: str) -> AggregationRequest:
        return AggregationRequest(
            entity="donation",
            filters=(*filters, COUNTED, MONEY_ONLY),
            metrics=(Metric.count(), Metric.sum("amount")),
            label=label,
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def organization_overview(self, caller: CallerIdentity, organization_id: int) -> OrganizationOverview:
        return await self._run_report(
            "organization_overview", lambda: self._organization_overview(caller, organization_id)
        )

    async def _organization_overview(self, caller: CallerIdentity, organization_id: int) -> OrganizationOverview:
        await self._require_organization(caller, organization_id)

        now = self.clock()
        scope = Filter.eq("organization_id", organization_id)
        trend_start, trend_end = month_window(now, OVERVIEW_MONTHS)
        cohorts = cohort_windows(now)
        next_year = cohorts.this_year_start.replace(year=cohorts.this_year_start.year + 1)

        results = await self._gather(
            "organization_overview",
            monthly=self.store.aggregate(self._monthly_request(scope, trend_start, trend_end, True, "monthly_trend")),
            types=self.store.aggregate(self._type_request(scope, "type_distribution")),
            top_causes=self.store.find(
                "cause", [scope], order_by=[SortKey("raised_amount", descending=True), SortKey("id")],
                limit=TOP_CAUSES,
            ),
            this_year_donors=self.store.distinct("donation", "donor_id", [
                scope, COUNTED,
                Filter.gte("created_at", cohorts.this_year_start), Filter.lte("created_at", cohorts.now),
            ]),
            last_year_donors=self.store.distinct("donation", "donor_id", [
                scope, COUNTED,
                Filter.gte("created_at", cohorts.last_year_start), Filter.lt("created_at", cohorts.this_year_start),
            ]),
            yearly=self.store.aggregate(AggregationRequest(
                entity="donation",
                filters=(scope, COUNTED, MONEY_ONLY,
                         Filter.gte("created_at", cohorts.last_year_start), Filter.lt("created_at", next_year)),
                group_by=(GroupKey("created_at", TimePart.YEAR),),
                metrics=(Metric.sum("amount"),),
                label="year_comparison",
            )),
            ratings=self.store.aggregate(AggregationRequest(
                entity="feedback",
                filters=(scope,),
                group_by=(GroupKey("rating"),),
                metrics=(Metric.count(),),
                label="sentiment",
            )),
        )

        buckets = fill_missing_months(results["monthly"], trend_start, now)

        retention = calculate_retention(results["this_year_donors"], results["last_year_donors"])

        totals_by_year = {row["year"]: to_decimal(row["total"]) for row in results["yearly"]}
        current_total = money(totals_by_year.get(now.year, 0))
        previous_total = money(totals_by_year.get(now.year - 1, 0))

        sentiment = sentiment_from_distribution({row["rating"]: row["count"] for row in results["ratings"]})

        return OrganizationOverview(
            organization_id=organization_id,
            generated_at=now,
            monthly_trend=_trend_points(buckets),
            donation_types=_type_slices(results["types"]),
            top_causes=[
                TopCause(
                    id=cause["id"],
                    title=cause["title"],
                    raised_amount=money(cause["raised_amount"]),
                    target_amount=money(cause["target_amount"]),
                    progress=percentage(cause["raised_amount"], cause["target_amount"], places=2),
                )
                for cause in results["top_causes"]
            ],
            retention=RetentionReport(
                this_year_donor_count=retention.this_year_donor_count,
                last_year_donor_count=retention.last_year_donor_count,
                retained_donor_count=retention.retained_donor_count,
                retention_rate=retention.retention_rate,
                new_donor_count=retention.new_donor_count,
            ),
            average_donation_trend=_average_points(buckets),
            year_comparison=YearComparison(
                current_year=now.year,
                current_year_total=current_total,
                previous_year=now.year - 1,
                previous_year_total=previous_total,
                yoy_growth=growth_rate(current_total, previous_total),
            ),
            sentiment=FeedbackSentiment(
                total_feedback=sentiment.total_feedback,
                average_rating=sentiment.average_rating,
                positive=sentiment.positive,
                neutral=sentiment.neutral,
                negative=sentiment.negative,
                rating_distribution=sentiment.rating_distribution,
            ),
        )

    async def cause_analytics(self, caller: CallerIdentity, cause_id: int) -> CauseAnalytics:
        return await self._run_report("cause_analytics", lambda: self._cause_analytics(caller, cause_id))

    async def _cause_analytics(self, caller: CallerIdentity, cause_id: int) -> CauseAnalytics:
        cause = await self.store.get("cause", cause_id)
        # Causes of other organizations are reported as missing
        if cause is None or not can_access_organization(caller, cause["organization_id"]):
            raise NotFoundError(f"Cause {cause_id} not found")

        now = self.clock()
        scope = Filter.eq("cause_id", cause_id)
        trend_start, trend_end = month_window(now, CAUSE_MONTHS)

        results = await self._gather(
            "cause_analytics",
            monthly=self.store.aggregate(self._monthly_request(scope, trend_start, trend_end, False, "cause_trend")),
            types=self.store.aggregate(self._type_request(scope, "cause_types")),
        )

        raised = money(cause["raised_amount"])
        target = money(cause["target_amount"])
        return CauseAnalytics(
            cause=CauseDetails(
                id=cause["id"],
                organization_id=cause["organization_id"],
                title=cause["title"],
                target_amount=target,
                raised_amount=raised,
            ),
            generated_at=now,
            monthly_trend=_trend_points(fill_missing_months(results["monthly"], trend_start, now)),
            donation_types=_type_slices(results["types"]),
            funding_progress=FundingProgress(
                raised_amount=raised,
                target_amount=target,
                percentage=percentage(raised, target, places=2),
            ),
        )

    async def donor_analytics(self, caller: CallerIdentity, organization_id: int) -> DonorAnalytics:
        return await self._run_report("donor_analytics", lambda: self._donor_analytics(caller, organization_id))

    async def _donor_analytics(self, caller: CallerIdentity, organization_id: int) -> DonorAnalytics:
        await self._require_organization(caller, organization_id)

        now = self.clock()
        results = await self._gather(
            "donor_analytics",
            all_donors=self.store.aggregate(self._per_donor_request(organization_id, False, "donor_totals")),
            money_donors=self.store.aggregate(self._per_donor_request(organization_id, True, "money_donor_totals")),
        )
        all_donors = results["all_donors"]
        money_donors = results["money_donors"]

        identities: Dict[int, Dict[str, Any]] = {}
        if money_donors:
            donors = await self.store.find("donor", [Filter.in_("id", [row["donor_id"] for row in money_donors])])
            identities = {donor["id"]: donor for donor in donors}

        this_month = month_start(now)
        total_donors = len(all_donors)
        repeat_donors = sum(1 for row in all_donors if row["count"] > 1)
        new_donors = sum(1 for row in all_donors if row["first_donation"] and row["first_donation"] >= this_month)
        donated = sum((to_decimal(row["total"]) for row in all_donors), Decimal("0"))

        ranked = sorted(
            (row for row in money_donors if row["donor_id"] in identities),
            key=lambda row: (-to_decimal(row["total"]), row["donor_id"]),
        )
        top_donors = []
        for row in ranked[:TOP_DONORS]:
            donor = identities[row["donor_id"]]
            top_donors.append(TopDonor(
                donor_id=row["donor_id"],
                first_name=donor["first_name"],
                last_name=donor["last_name"],
                email=donor["email"],
                total_donated=money(row["total"]),
                donation_count=row["count"],
                first_donation=row["first_donation"],
                last_donation=row["last_donation"],
            ))

        return DonorAnalytics(
            organization_id=organization_id,
            generated_at=now,
            metrics=DonorMetrics(
                total_donors=total_donors,
                new_donors_this_month=new_donors,
                repeat_donors=repeat_donors,
                repeat_donor_percentage=percentage(repeat_donors, total_donors, places=1),
                average_donation_per_donor=money(donated / total_donors) if total_donors else money(0),
            ),
            top_donors=top_donors,
        )


    # ------------------------------------------------------------------
    # Dashboards
    # ------------------------------------------------------------------

    async def donor_dashboard(self, caller: CallerIdentity) -> DonorDashboard:
        return await self._run_report("donor_dashboard", lambda: self._donor_dashboard(caller))

    async def _donor_dashboard(self, caller: CallerIdentity) -> DonorDashboard:
        if caller.role != Role.DONOR:
            raise AuthorizationError("Only donors have a donor dashboard")

        now = self.clock()
        last_month = shift_months(now, -1)
        two_months_ago = shift_months(now, -2)
        scope = Filter.eq("donor_id", caller.user_id)

        results = await self._gather(
            "donor_dashboard",
            donor=self.store.get("donor", caller.user_id),
            types=self.store.aggregate(self._type_request(scope, "donor_types")),
            last_month=self.store.aggregate(self._money_total_request(
                [scope, Filter.gte("created_at", last_month), Filter.lte("created_at", now)], "donor_last_month"
            )),
            previous_month=self.store.aggregate(self._money_total_request(
                [scope, Filter.gte("created_at", two_months_ago), Filter.lt("created_at", last_month)],
                "donor_previous_month",
            )),
            active_types=self.store.distinct("donation", "type", [
                scope, COUNTED, Filter.gte("created_at", last_month), Filter.lte("created_at", now),
            ]),
            organizations=self.store.distinct("donation", "organization_id", [scope, COUNTED]),
            recent=self.store.find("donation", [scope, COUNTED], order_by=RECENT_FIRST, limit=DONOR_RECENT_DONATIONS),
        )
        if results["donor"] is None:
            raise NotFoundError(f"Donor {caller.user_id} not found")

        types = results["types"]
        donation_count = sum(row["count"] for row in types)
        total_donated = money(sum(
            (to_decimal(row["total"]) for row in types if row["type"] == DonationType.MONEY), Decimal("0")
        ))
        last_month_total = money(_single(results["last_month"]).get("total"))
        previous_month_total = money(_single(results["previous_month"]).get("total"))

        return DonorDashboard(
            donor_id=caller.user_id,
            generated_at=now,
            total_donated=total_donated,
            donation_count=donation_count,
            last_month_total=last_month_total,
            previous_month_total=previous_month_total,
            donation_growth=growth_rate(last_month_total, previous_month_total),
            donation_types_supported=len(types),
            active_donation_types=len(results["active_types"]),
            organizations_supported=len(results["organizations"]),
            impact_score=impact_score(total_donated, donation_count),
            recent_donations=[RecentDonation.model_validate(row) for row in results["recent"]],
        )

    async def organization_dashboard(self, caller: CallerIdentity, organization_id: int) -> OrganizationDashboard:
        return await self._run_report(
            "organization_dashboard", lambda: self._organization_dashboard(caller, organization_id)
        )

    async def _organization_dashboard(self, caller: CallerIdentity, organization_id: int) -> OrganizationDashboard:
        await self._require_organization(caller, organization_id)

        now = self.clock()
        scope = Filter.eq("organization_id", organization_id)
        results = await self._gather(
            "organization_dashboard",
            donations=self.store.aggregate(self._money_total_request([scope], "dashboard_donations")),
            donation_count=self.store.count("donation", [scope, COUNTED]),
            causes=self.store.aggregate(AggregationRequest(
                entity="cause",
                filters=(scope,),
                metrics=(
                    Metric.count(),
                    Metric.sum("target_amount", "target"),
                    Metric.sum("raised_amount", "raised"),
                ),
                label="dashboard_causes",
            )),
            campaign_ids=self.store.distinct("campaign_organization", "campaign_id", [scope]),
            recent=self.store.find(
                "donation", [scope, COUNTED], order_by=RECENT_FIRST, limit=ORGANIZATION_RECENT_DONATIONS
            ),
        )

        # Campaigns are shared, so they are scoped through their organization links
        campaigns: Dict[str, Any] = {"by_status": [], "active": 0, "recent": []}
        if results["campaign_ids"]:
            campaign_scope = [
                Filter.in_("id", sorted(results["campaign_ids"])),
                Filter.ne("status", CampaignStatus.DRAFT),
            ]
            campaigns = await self._gather(
                "organization_dashboard",
                by_status=self.store.aggregate(AggregationRequest(
                    entity="campaign",
                    filters=tuple(campaign_scope),
                    group_by=(GroupKey("status"),),
                    metrics=(
                        Metric.count(),
                        Metric.sum("total_target_amount", "target"),
                        Metric.sum("total_raised_amount", "raised"),
                        Metric.sum("total_supporters", "supporters"),
                    ),
                    label="dashboard_campaigns",
                )),
                active=self.store.count("campaign", campaign_scope + [
                    Filter.eq("status", CampaignStatus.ACTIVE),
                    Filter.lte("start_date", now),
                    Filter.gte("end_date", now),
                ]),
                recent=self.store.find("campaign", campaign_scope, order_by=RECENT_FIRST, limit=RECENT_CAMPAIGNS),
            )

        donations = _single(results["donations"])
        money_count = donations.get("count", 0)
        money_total = money(donations.get("total"))

        by_status = {row["status"]: row for row in campaigns["by_status"]}
        campaign_count = sum(row["count"] for row in by_status.values())
        campaign_target = money(sum((to_decimal(row["target"]) for row in by_status.values()), Decimal("0")))
        campaign_raised = money(sum((to_decimal(row["raised"]) for row in by_status.values()), Decimal("0")))
        supporters = sum((to_decimal(row["supporters"]) for row in by_status.values()), Decimal("0"))

        causes = _single(results["causes"])
        cause_target = money(causes.get("target"))
        cause_raised = money(causes.get("raised"))

        return OrganizationDashboard(
            organization_id=organization_id,
            generated_at=now,
            donations=DashboardDonationStats(
                total_amount=money_total,
                total_donations=results["donation_count"],
                average_donation=money(money_total / money_count) if money_count else money(0),
            ),
            campaigns=DashboardCampaignStats(
                total_campaigns=campaign_count,
                active_campaigns=campaigns["active"],
                completed_campaigns=by_status.get(CampaignStatus.COMPLETED.value, {}).get("count", 0),
                cancelled_campaigns=by_status.get(CampaignStatus.CANCELLED.value, {}).get("count", 0),
                total_target_amount=campaign_target,
                total_raised_amount=campaign_raised,
                average_supporters=round_half_up(supporters / campaign_count, 1) if campaign_count else 0.0,
                achievement_rate=percentage(campaign_raised, campaign_target, places=1),
            ),
            causes=DashboardCauseStats(
                total_causes=causes.get("count", 0),
                total_target_amount=cause_target,
                total_raised_amount=cause_raised,
                achievement_rate=percentage(cause_raised, cause_target, places=1),
            ),
            recent_donations=[RecentDonation.model_validate(row) for row in results["recent"]],
            recent_campaigns=[RecentCampaign.model_validate(row) for row in campaigns["recent"]],
        )
