import django_filters

from modules.core.exceptions import InvalidStatus
from modules.core.normalization import normalize_key
from modules.shipments.batching import day_bounds
from modules.shipments.models import Shipment
from modules.shipments.status import to_shipment_status


class ShipmentFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(method="filter_status")
    batch_number = django_filters.CharFilter(field_name="batch_number", lookup_expr="iexact")
    tracking_code = django_filters.CharFilter(field_name="tracking_code", lookup_expr="iexact")
    departure_date = django_filters.DateFilter(method="filter_departure_day")
    origin_branch = django_filters.UUIDFilter(field_name="origin_branch_id")
    destination_branch = django_filters.UUIDFilter(field_name="destination_branch_id")

    class Meta:
        model = Shipment
        fields = [
            "status",
            "batch_number",
            "tracking_code",
            "departure_date",
            "origin_branch",
            "destination_branch",
        ]

    def filter_status(self, queryset, name, value):
        parts = [part for part in value.split(",") if part.strip()]
        statuses = {to_shipment_status(normalize_key(part)) for part in parts} - {None}
        if parts and not statuses:
            raise InvalidStatus(f"Invalid status filter: {value!r}.", attr="status")
        return queryset.filter(current_status__in=statuses) if statuses else queryset

    def filter_departure_day(self, queryset, name, value):
        start, end = day_bounds(value)
        return queryset.filter(departure_date__gte=start, departure_date__lt=end)
