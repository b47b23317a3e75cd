# exams/urls.py

from django.urls import path
from . import views

app_name = 'exams'

urlpatterns = [
    # Exams
    path('', views.exam_collection, name='exam_collection'),
    path('<uuid:pk>/', views.exam_detail, name='exam_detail'),

    # Scores
    path('<uuid:exam_id>/scores/', views.exam_scores, name='exam_scores'),
    path('<uuid:exam_id>/scores/export/', views.exam_scores_export, name='exam_scores_export'),
    path('scores/<uuid:pk>/', views.score_detail, name='score_detail'),

    # Marksheets
    path('marksheets/', views.marksheet_list, name='marksheet_list'),
    path('marksheets/<uuid:pk>/', views.marksheet_detail, name='marksheet_detail'),
    path('marksheets/<uuid:pk>/pdf/', views.marksheet_pdf, name='marksheet_pdf'),
    path('marksheets/rank/', views.marksheet_rank, name='marksheet_rank'),
    path('marksheets/rebuild/', views.marksheet_rebuild, name='marksheet_rebuild'),
    path('marksheets/export/', views.marksheet_cohort_export, name='marksheet_cohort_export'),

    # Study recommendations
    path('recommendations/<uuid:student_id>/', views.study_recommendations, name='study_recommendations'),
]
