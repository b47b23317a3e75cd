"""
URL configuration for schoolnet project.

Every app exposes a JSON API under /api/<app>/. The health check lives at the
root so load balancers can reach it without authentication.
"""
from django.contrib import admin
from django.urls import path, include

from core.views import health_check

urlpatterns = [
    # Django admin
    path('admin/', admin.site.urls),

    path('health/', health_check, name='health'),

    # Accounts - login, logout, users
    path('api/auth/', include(('accounts.urls', 'accounts'), namespace='accounts')),

    # Core - campuses and dashboards
    path('api/', include(('core.urls', 'core'), namespace='core')),

    # Academics - subjects, classes, enrollments, teacher assignments
    path('api/academics/', include(('academics.urls', 'academics'), namespace='academics')),

    # Exams - exams, scores, marksheets, recommendations
    path('api/exams/', include(('exams.urls', 'exams'), namespace='exams')),

    # Attendance - students and teachers
    path('api/attendance/', include(('attendance.urls', 'attendance'), namespace='attendance')),
]
