# Generated migration for the tenant model

import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Tenant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(help_text='Organisation name', max_length=255)),
                ('slug', models.SlugField(help_text='URL-friendly identifier (lowercase)', max_length=150, unique=True)),
                ('description', models.TextField(blank=True)),
                ('domain', models.CharField(blank=True, help_text='Custom domain', max_length=255)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('settings', models.JSONField(blank=True, default=dict)),
                ('parent_tenant', models.ForeignKey(blank=True, help_text='Parent organisation for tenant hierarchies', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='child_tenants', to='tenants.tenant')),
            ],
            options={
                'db_table': 'tenants',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['is_active', 'created_at'], name='tenants_active_created_idx')],
            },
        ),
    ]
