# core/urls.py
from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    # Campuses
    path('campuses/', views.campus_collection, name='campus_collection'),
    path('campuses/<uuid:pk>/', views.campus_detail, name='campus_detail'),

    # Dashboard
    path('dashboard/overview/', views.dashboard_overview, name='dashboard_overview'),
    path('dashboard/top-performers/', views.dashboard_top_performers, name='dashboard_top_performers'),
    path('dashboard/campus-comparison/', views.dashboard_campus_comparison, name='dashboard_campus_comparison'),
    path('dashboard/drop-ratio/', views.dashboard_drop_ratio, name='dashboard_drop_ratio'),
    path('dashboard/trends/', views.dashboard_trends, name='dashboard_trends'),
]
