import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

FREQUENCIES = [('MONTHLY', 'Monthly'), ('QUARTERLY', 'Quarterly'), ('ANNUALLY', 'Annually')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        ('captable', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='OptionPlan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('total_pool_size', models.DecimalField(decimal_places=0, max_digits=20)),
                ('total_granted', models.DecimalField(decimal_places=0, default=0, max_digits=20)),
                ('total_exercised', models.DecimalField(decimal_places=0, default=0, max_digits=20)),
                ('status', models.CharField(
                    choices=[('ACTIVE', 'Active'), ('CLOSED', 'Closed')],
                    default='ACTIVE',
                    max_length=16,
                )),
                ('termination_policy', models.CharField(
                    choices=[('FORFEITURE', 'Forfeiture'), ('ACCELERATION', 'Acceleration'), ('PRO_RATA', 'Pro rata')],
                    default='FORFEITURE',
                    max_length=16,
                )),
                ('exercise_window_days', models.PositiveIntegerField(default=90)),
                ('board_approval_date', models.DateField(blank=True, null=True)),
                ('default_cliff_months', models.PositiveIntegerField(default=12)),
                ('default_vesting_months', models.PositiveIntegerField(default=48)),
                ('default_vesting_frequency', models.CharField(choices=FREQUENCIES, default='MONTHLY', max_length=16)),
                ('notes', models.TextField(blank=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='option_plans',
                    to='accounts.company',
                )),
                ('share_class', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='option_plans',
                    to='captable.shareclass',
                )),
                ('created_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('total_pool_size__gt', 0)), name='plan_pool_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OptionGrant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('employee_name', models.CharField(max_length=200)),
                ('employee_email', models.EmailField(max_length=254)),
                ('quantity', models.DecimalField(decimal_places=0, max_digits=20)),
                ('strike_price', models.DecimalField(decimal_places=6, max_digits=20)),
                ('exercised', models.DecimalField(decimal_places=0, default=0, max_digits=20)),
                ('status', models.CharField(
                    choices=[
                        ('ACTIVE', 'Active'),
                        ('EXERCISED', 'Exercised'),
                        ('CANCELLED', 'Cancelled'),
                        ('EXPIRED', 'Expired'),
                    ],
                    default='ACTIVE',
                    max_length=16,
                )),
                ('grant_date', models.DateField()),
                ('expiration_date', models.DateField()),
                ('cliff_months', models.PositiveIntegerField()),
                ('vesting_duration_months', models.PositiveIntegerField()),
                ('vesting_frequency', models.CharField(choices=FREQUENCIES, default='MONTHLY', max_length=16)),
                ('cliff_percentage', models.DecimalField(decimal_places=2, default=0, max_digits=7)),
                ('acceleration_on_coc', models.BooleanField(default=False)),
                ('terminated_at', models.DateTimeField(blank=True, null=True)),
                ('vested_at_termination', models.DecimalField(blank=True, decimal_places=0, max_digits=20, null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='option_grants',
                    to='accounts.company',
                )),
                ('plan', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='grants',
                    to='options.optionplan',
                )),
                ('shareholder', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='option_grants',
                    to='captable.shareholder',
                )),
                ('created_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'ordering': ['-grant_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'expiration_date'], name='grant_status_expiry_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('exercised__gte', 0)), name='grant_exercised_non_negative'),
                    models.CheckConstraint(
                        condition=models.Q(('exercised__lte', models.F('quantity'))),
                        name='grant_exercised_within_quantity',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('cliff_months__lte', models.F('vesting_duration_months'))),
                        name='grant_cliff_within_vesting',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='OptionExerciseRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=0, max_digits=20)),
                ('total_cost', models.DecimalField(decimal_places=6, max_digits=32)),
                ('payment_reference', models.CharField(max_length=32, unique=True)),
                ('status', models.CharField(
                    choices=[
                        ('PENDING_PAYMENT', 'Pending payment'),
                        ('COMPLETED', 'Completed'),
                        ('CANCELLED', 'Cancelled'),
                    ],
                    default='PENDING_PAYMENT',
                    max_length=16,
                )),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('grant', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='exercise_requests',
                    to='options.optiongrant',
                )),
                ('created_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('confirmed_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'PENDING_PAYMENT')),
                        fields=('grant',),
                        name='one_pending_exercise_per_grant',
                    ),
                ],
            },
        ),
    ]
