import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ShareClass',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('class_name', models.CharField(max_length=128)),
                ('share_type', models.CharField(
                    choices=[('COMMON', 'Common Stock'), ('PREFERRED', 'Preferred Stock')],
                    default='COMMON',
                    max_length=16,
                )),
                ('votes_per_share', models.DecimalField(decimal_places=2, default=1, max_digits=10)),
                ('total_authorized', models.DecimalField(decimal_places=0, default=0, max_digits=20)),
                ('total_issued', models.DecimalField(decimal_places=0, default=0, max_digits=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='share_classes',
                    to='accounts.company',
                )),
            ],
            options={
                'ordering': ['company_id', 'class_name'],
                'unique_together': {('company', 'class_name')},
            },
        ),
        migrations.CreateModel(
            name='Shareholder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='shareholders',
                    to='accounts.company',
                )),
                ('user', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='shareholder_records',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
        ),
        migrations.CreateModel(
            name='Shareholding',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=0, default=0, max_digits=20)),
                ('ownership_pct', models.DecimalField(decimal_places=6, default=0, max_digits=9)),
                ('voting_power_pct', models.DecimalField(decimal_places=6, default=0, max_digits=9)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='shareholdings',
                    to='accounts.company',
                )),
                ('share_class', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='holdings',
                    to='captable.shareclass',
                )),
                ('shareholder', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='holdings',
                    to='captable.shareholder',
                )),
            ],
        ),
        migrations.AddConstraint(
            model_name='shareholding',
            constraint=models.UniqueConstraint(fields=('shareholder', 'share_class'), name='unique_holding_per_class'),
        ),
        migrations.CreateModel(
            name='CapTableSnapshot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('snapshot_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('reason', models.CharField(max_length=64)),
                ('notes', models.TextField(blank=True)),
                ('data', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='snapshots',
                    to='accounts.company',
                )),
            ],
            options={'ordering': ['-snapshot_date']},
        ),
    ]
