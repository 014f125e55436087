from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from authentication.core.response import standardized_response


class OrderPagination(PageNumberPagination):
    """`?page=` and `?limit=` pagination wrapped in the standard envelope."""
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        return Response(standardized_response(
            data=data,
            pagination={
                'page': self.page.number,
                'limit': self.get_page_size(self.request),
                'total': self.page.paginator.count,
                'pages': self.page.paginator.num_pages,
                'next': self.get_next_link(),
                'previous': self.get_previous_link(),
            }
        ))
