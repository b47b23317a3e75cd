# attendance/urls.py

from django.urls import path
from . import views

app_name = 'attendance'

urlpatterns = [
    # Students
    path('students/', views.student_attendance_list, name='student_attendance_list'),
    path('students/mark/', views.mark_student_attendance, name='mark_student_attendance'),
    path('students/<uuid:pk>/', views.student_attendance_detail, name='student_attendance_detail'),
    path('students/history/<uuid:student_id>/', views.student_attendance_history, name='student_attendance_history'),

    # Teachers
    path('teachers/', views.teacher_attendance_list, name='teacher_attendance_list'),
    path('teachers/check-in/', views.teacher_check_in, name='teacher_check_in'),
    path('teachers/check-out/', views.teacher_check_out, name='teacher_check_out'),
    path('teachers/<uuid:pk>/', views.teacher_attendance_detail, name='teacher_attendance_detail'),

    # Reports
    path('reports/monthly/', views.monthly_attendance_report, name='monthly_attendance_report'),
    path('reports/low/', views.low_attendance_report, name='low_attendance_report'),
]
