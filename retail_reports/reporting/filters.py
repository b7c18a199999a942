"""
Report Filters

Caller-facing filter structure shared by the report operations.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from retail_reports.reporting.aggregation import QueryFilters
from retail_reports.reporting.errors import InvalidFilterError


class ReportFilters(BaseModel):
    """Recognized report options; every field is optional"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_date: Optional[str] = Field(default=None, alias="startDate", description="YYYY-MM-DD")
    end_date: Optional[str] = Field(default=None, alias="endDate", description="YYYY-MM-DD")
    category: Optional[str] = None
    customer: Optional[str] = Field(default=None, description="Customer ID")
    product: Optional[str] = Field(default=None, description="Product ID")
    limit: Optional[int] = Field(default=None, description="Top-N size (1-100)")

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "ReportFilters":
        """
        Build filters from caller input such as query parameters.

        Raises:
            InvalidFilterError: If a value has the wrong type, e.g. a
                non-integer limit or a non-string date
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            fields = ", ".join(err["field"] for err in errors)
            raise InvalidFilterError(f"Invalid report filters: {fields}", details={"errors": errors}) from e

    def resolve_limit(self, default: int, maximum: int = 100) -> int:
        """
        Effective top-N size.

        Raises:
            InvalidFilterError: If an explicit limit is outside 1..maximum
        """
        if self.limit is None:
            return default
        if self.limit < 1 or self.limit > maximum:
            raise InvalidFilterError(
                f"limit must be between 1 and {maximum}",
                details={"limit": self.limit},
            )
        return self.limit

    def query_filters(self, include_category: bool = True) -> QueryFilters:
        return QueryFilters(
            category=self.category if include_category else None,
            customer_id=self.customer,
            product_id=self.product,
        )

    def describe(self) -> dict:
        return self.model_dump(exclude_none=True)
