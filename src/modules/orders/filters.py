import django_filters

from modules.orders.models import Order
from modules.orders.status import parse_status_filter
from modules.shipments.batching import day_bounds


class OrderFilter(django_filters.FilterSet):
    """``status`` takes a comma-separated list in any accepted spelling."""

    status = django_filters.CharFilter(method="filter_status")
    customer = django_filters.UUIDFilter(field_name="customer_id")
    branch = django_filters.UUIDFilter(field_name="branch_id")
    shipment = django_filters.UUIDFilter(field_name="shipment_id")
    batch_number = django_filters.CharFilter(field_name="batch_number", lookup_expr="iexact")
    payment_status = django_filters.CharFilter(field_name="payment_status", lookup_expr="iexact")
    departure_date = django_filters.DateFilter(method="filter_departure_day")
    unbatched = django_filters.BooleanFilter(field_name="shipment", lookup_expr="isnull")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "customer",
            "branch",
            "shipment",
            "batch_number",
            "payment_status",
            "departure_date",
            "unbatched",
            "start_date",
            "end_date",
        ]

    def filter_status(self, queryset, name, value):
        statuses = parse_status_filter(value)
        if not statuses:
            return queryset
        return queryset.filter(status__in=statuses)

    def filter_departure_day(self, queryset, name, value):
        start, end = day_bounds(value)
        return queryset.filter(departure_date__gte=start, departure_date__lt=end)
