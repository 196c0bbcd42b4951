"""
Django admin site configuration.
"""
from django.contrib import admin


admin.site.site_header = "WeGroup Administration"
admin.site.site_title = "WeGroup Admin"
admin.site.index_title = "Platform administration"
