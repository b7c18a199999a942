"""
Unit Tests - Inventory Classification and Recommendations
"""
import pytest

from retail_reports.reporting.inventory import InventoryClassifier, StockLevel, Urgency
from retail_reports.reporting.ranking import rank
from retail_reports.reporting.aggregation import AggregateBucket
from retail_reports.reporting.recommendations import (
    ABC_ANALYSIS_MESSAGE,
    BALANCED_MESSAGE,
    LEAD_TIME_MESSAGE,
    REORDER_NOTIFICATION_MESSAGE,
    RecommendationGenerator,
)
from retail_reports.reporting.records import StockItem
from retail_reports.reporting.trends import classify_growth


def _item(quantity: int, min_threshold: int = 10, max_threshold=40, daily_usage=None, **kwargs) -> StockItem:
    return StockItem(
        product_id=kwargs.get("product_id", "P"),
        name=kwargs.get("name", "Item"),
        sku=kwargs.get("sku", "SKU"),
        category=kwargs.get("category", "Snacks"),
        quantity=quantity,
        min_threshold=min_threshold,
        max_threshold=max_threshold,
        unit_cost=kwargs.get("unit_cost", 1.0),
        unit_price=kwargs.get("unit_price", 2.0),
        daily_usage=daily_usage,
    )


@pytest.fixture
def classifier(reporting_settings) -> InventoryClassifier:
    return InventoryClassifier(reporting_settings)


@pytest.fixture
def generator(reporting_settings) -> RecommendationGenerator:
    return RecommendationGenerator(reporting_settings)


class TestInventoryClassifier:
    """Tests for InventoryClassifier"""

    def test_low_stock_with_derived_max(self, classifier):
        """Test an item at half its min threshold is low with max = 3 x min"""
        status = classifier.classify(_item(5, max_threshold=None))

        assert status.level == StockLevel.LOW
        assert status.max_threshold == 30
        assert status.utilization == pytest.approx(16.67, abs=0.01)
        assert status.reorder_quantity == 25

    def test_zero_quantity_is_critical(self, classifier):
        """Test out of stock items are critical with no days of cover"""
        status = classifier.classify(_item(0, daily_usage=4.0))

        assert status.level == StockLevel.CRITICAL
        assert status.days_until_stockout == 0
        assert status.urgency == Urgency.CRITICAL
        assert status.reorder_quantity == 40

    def test_overstock(self, classifier):
        """Test quantities above max are overstocked and need no reorder"""
        status = classifier.classify(_item(50))

        assert status.level == StockLevel.OVERSTOCK
        assert status.is_overstocked
        assert status.reorder_quantity == 0
        assert status.urgency is None

    @pytest.mark.parametrize("quantity,level", [
        (10, StockLevel.LOW),
        (11, StockLevel.NORMAL),
        (28, StockLevel.NORMAL),
        (29, StockLevel.HIGH),
        (40, StockLevel.HIGH),
        (41, StockLevel.OVERSTOCK),
    ])
    def test_level_boundaries(self, classifier, quantity, level):
        """Test level boundaries at min, 70% of max and max"""
        assert classifier.classify(_item(quantity)).level == level

    def test_usage_below_one_counts_as_one(self, classifier):
        """Test slow movers are floored at one unit per day"""
        status = classifier.classify(_item(8, daily_usage=0.5))

        assert status.days_until_stockout == 8

    def test_observed_usage_fills_missing_usage(self, classifier):
        """Test sales-derived usage is used only when the item has none"""
        measured = classifier.classify(_item(10, daily_usage=None), observed_usage=2.0)
        declared = classifier.classify(_item(10, daily_usage=5.0), observed_usage=2.0)

        assert measured.days_until_stockout == 5
        assert declared.days_until_stockout == 2

    @pytest.mark.parametrize("days,urgency", [
        (0, Urgency.CRITICAL),
        (7, Urgency.CRITICAL),
        (7.5, Urgency.HIGH),
        (14, Urgency.HIGH),
        (15, Urgency.MEDIUM),
    ])
    def test_urgency_tiers(self, classifier, days, urgency):
        """Test urgency tiers at 7 and 14 days"""
        assert classifier.urgency(days) == urgency

    def test_urgency_only_for_low_items(self, classifier):
        """Test normal items carry no urgency"""
        assert classifier.classify(_item(20, daily_usage=10)).urgency is None

    def test_stock_values(self, classifier):
        """Test stock is valued at cost and at retail"""
        status = classifier.classify(_item(20, unit_cost=1.5, unit_price=3.0))

        assert status.stock_value == 30.0
        assert status.retail_value == 60.0


class TestRecommendationGenerator:
    """Tests for RecommendationGenerator"""

    def test_balanced_when_nothing_fires(self, generator, classifier):
        """Test the neutral message is the only output when no rule fires"""
        stock = [classifier.classify(_item(20)) for _ in range(5)]

        assert generator.generate(stock=stock) == [BALANCED_MESSAGE]

    def test_empty_inputs_are_balanced(self, generator):
        """Test no inputs at all give the neutral message"""
        assert generator.generate() == [BALANCED_MESSAGE]

    def test_low_stock_advisories(self, generator, classifier):
        """Test low share and overstock share rules over the catalog"""
        stock = [
            classifier.classify(_item(5)),
            classifier.classify(_item(20)),
            classifier.classify(_item(100)),
        ]

        assert generator.generate(stock=stock) == [
            "Review 1 low stock items and consider reordering",
            "High percentage of items are low on stock - review inventory management strategy",
            "Consider promotions for 1 overstocked items",
        ]

    def test_urgency_advisories_come_first(self, generator, classifier):
        """Test critical advisories precede the general ones"""
        low = [
            classifier.classify(_item(0)),
            classifier.classify(_item(10, daily_usage=1.0)),
        ]

        assert generator.generate(low_stock=low) == [
            "Immediate action required for 1 critical items",
            "Plan reorders for 1 high priority items",
            LEAD_TIME_MESSAGE,
        ]

    def test_trend_advisories(self, generator):
        """Test falling sales and revenue concentration"""
        products = rank([
            AggregateBucket(keys={"product": "P1"}, total=900, label="Espresso Beans"),
            AggregateBucket(keys={"product": "P2"}, total=100, label="Green Tea"),
        ])

        recommendations = generator.generate(trend=classify_growth(200, 100), top_products=products)

        assert recommendations[0] == "Review sales strategies and promotions"
        assert recommendations[1].startswith("Revenue is concentrated in Espresso Beans (90.0% of sales)")

    def test_stable_trend_is_silent(self, generator):
        """Test a stable trend adds nothing"""
        assert generator.generate(trend=classify_growth(100, 102)) == [BALANCED_MESSAGE]

    def test_valuation_rules(self, generator):
        """Test low margin and high value categories"""
        categories = [
            {"category": "Dairy", "average_margin": 12.0, "total_cost": 500.0},
            {"category": "Beverages", "average_margin": 45.0, "total_cost": 15000.0},
        ]

        assert generator.for_valuation(categories) == [
            "Review pricing for 1 low margin categories",
            "Focus on high-value categories for inventory optimization",
            ABC_ANALYSIS_MESSAGE,
        ]

    def test_valuation_always_suggests_abc_analysis(self, generator):
        """Test the ABC analysis advice is always present"""
        assert generator.for_valuation([]) == [ABC_ANALYSIS_MESSAGE]

    def test_movement_rules(self, generator):
        """Test movement ratios compare quantities"""
        assert generator.for_movements(stock_in=10, stock_out=16) == [
            "Stock out rate is high - review reorder points",
            REORDER_NOTIFICATION_MESSAGE,
        ]
        assert generator.for_movements(stock_in=16, stock_out=10) == [
            "Stock in rate is high - review ordering quantities",
            REORDER_NOTIFICATION_MESSAGE,
        ]
        assert generator.for_movements(stock_in=10, stock_out=10) == [REORDER_NOTIFICATION_MESSAGE]
