"""
Unit tests for pagination planning and the response pagination fields.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_pagination.py -v
"""

import pytest

from searchbox.errors import ValidationRejected
from searchbox.pagination import OffsetSpec, PageSpec, plan_pagination


class TestPlanPagination:

    def test_defaults(self):
        """Test that no paging parameters give the first page of 20."""
        plan = plan_pagination(PageSpec(), max_hits=3000)
        assert (plan.offset, plan.limit) == (0, 20)

    def test_page_mode(self):
        """Test that page and hitsPerPage set offset and limit."""
        plan = plan_pagination(PageSpec(page=2, hits_per_page=20), max_hits=3000)
        assert (plan.offset, plan.limit) == (40, 20)

    def test_offset_mode(self):
        """Test that offset and length are used as given."""
        plan = plan_pagination(OffsetSpec(offset=35, length=5), max_hits=3000)
        assert (plan.offset, plan.limit) == (35, 5)
        assert plan.hits_per_page is None

    def test_offset_mode_default_length(self):
        """Test that offset mode without length uses the default page size."""
        assert plan_pagination(OffsetSpec(offset=0), max_hits=3000).limit == 20

    def test_ceiling_rejected(self):
        """Test that a window past the hit ceiling is rejected on offset and length."""
        with pytest.raises(ValidationRejected) as exc:
            plan_pagination(OffsetSpec(offset=2500, length=2500), max_hits=3000)
        assert exc.value.fields == ["offset", "length"]

    def test_window_ending_on_ceiling_allowed(self):
        """Test that a window ending exactly on the ceiling is accepted."""
        plan = plan_pagination(OffsetSpec(offset=2900, length=100), max_hits=3000)
        assert plan.offset + plan.limit == 3000

    def test_page_mode_ceiling(self):
        """Test that a page past the ceiling is rejected on page and hitsPerPage."""
        with pytest.raises(ValidationRejected) as exc:
            plan_pagination(PageSpec(page=100, hits_per_page=100), max_hits=3000)
        assert exc.value.fields == ["page", "hitsPerPage"]

    def test_limit_must_be_positive(self):
        """Test that a zero length is rejected."""
        with pytest.raises(ValidationRejected):
            plan_pagination(OffsetSpec(offset=0, length=0), max_hits=3000)

    def test_negative_offset(self):
        """Test that a negative offset is rejected."""
        with pytest.raises(ValidationRejected):
            plan_pagination(OffsetSpec(offset=-1, length=5), max_hits=3000)


class TestResponseFields:

    def test_nb_pages_rounds_up(self):
        """Test that nbPages counts a partial last page."""
        plan = plan_pagination(PageSpec(page=0, hits_per_page=20), max_hits=3000)
        assert plan.response_fields(23) == {
            "page": 0,
            "hitsPerPage": 20,
            "nbHits": 23,
            "nbPages": 2,
        }

    def test_page_past_the_end_keeps_totals(self):
        """Test that a page past the end still reports the totals."""
        plan = plan_pagination(PageSpec(page=2, hits_per_page=20), max_hits=3000)
        fields = plan.response_fields(23)
        assert fields["nbHits"] == 23
        assert fields["nbPages"] == 2
        assert fields["page"] == 2

    def test_no_hits(self):
        """Test that zero or missing hits give zero pages."""
        plan = plan_pagination(PageSpec(), max_hits=3000)
        assert plan.response_fields(0)["nbPages"] == 0
        assert plan.response_fields(None)["nbHits"] == 0

    def test_offset_mode_omits_nb_pages_with_hits(self):
        """Test that offset mode reports offset and length instead of pages."""
        plan = plan_pagination(OffsetSpec(offset=10, length=5), max_hits=3000)
        assert plan.response_fields(50) == {"offset": 10, "length": 5, "nbHits": 50}

    def test_offset_mode_zero_hits(self):
        """Test that offset mode with no hits reports zero pages."""
        plan = plan_pagination(OffsetSpec(offset=10, length=5), max_hits=3000)
        assert plan.response_fields(0)["nbPages"] == 0
