from django.urls import path
from .views import (
    CarrierListView, DashboardView, DutyStatusListView, ELDLogDetailView, ELDLogGenerateView,
    ELDLogListView, LoginView, LogoutView, MeView, RegisterView, TripAdvanceView,
    TripDetailView, TripListView, TripRouteView, VehicleListView,
)

urlpatterns = [
    path('auth/login/', LoginView.as_view(), name='login'),
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/logout/', LogoutView.as_view(), name='logout'),
    path('auth/me/', MeView.as_view(), name='me'),
    path('dashboard/', DashboardView.as_view(), name='dashboard'),
    path('trips/', TripListView.as_view(), name='trip-list'),
    path('trips/<int:trip_id>/', TripDetailView.as_view(), name='trip-detail'),
    path('trips/<int:trip_id>/advance/', TripAdvanceView.as_view(), name='trip-advance'),
    path('trips/<int:trip_id>/route/', TripRouteView.as_view(), name='trip-route'),
    path('trips/<int:trip_id>/duty-status/', DutyStatusListView.as_view(), name='duty-status-list'),
    path('trips/<int:trip_id>/eld-logs/', ELDLogListView.as_view(), name='eld-log-list'),
    path('trips/<int:trip_id>/eld-logs/generate/', ELDLogGenerateView.as_view(), name='eld-log-generate'),
    path('trips/<int:trip_id>/eld-logs/<str:day>/', ELDLogDetailView.as_view(), name='eld-log-detail'),
    path('vehicles/', VehicleListView.as_view(), name='vehicle-list'),
    path('carriers/', CarrierListView.as_view(), name='carrier-list'),
]
