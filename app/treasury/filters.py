import django_filters as filters

from treasury.ledger.models import Cashbox, Transaction, day_bounds


class CashboxFilter(filters.FilterSet):
    branch_id = filters.UUIDFilter(field_name="branch_id")

    class Meta:
        model = Cashbox
        fields = ["branch_id", "is_active"]


class TransactionFilter(filters.FilterSet):
    """
    start_date and end_date are inclusive local days.
    """

    cashbox_id = filters.UUIDFilter(field_name="cashbox_id")
    start_date = filters.DateFilter(method="filter_start_date")
    end_date = filters.DateFilter(method="filter_end_date")

    class Meta:
        model = Transaction
        fields = [
            "cashbox_id",
            "type",
            "category",
            "reference_kind",
            "reference_id",
            "start_date",
            "end_date",
        ]

    def filter_start_date(self, queryset, name, value):
        start, _ = day_bounds(value)
        if start is None:
            return queryset
        return queryset.filter(created_at__gte=start)

    def filter_end_date(self, queryset, name, value):
        _, end = day_bounds(value)
        if end is None:
            return queryset
        return queryset.filter(created_at__lt=end)
