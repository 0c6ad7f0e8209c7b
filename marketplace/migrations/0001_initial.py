import decimal

import django.contrib.auth.models
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import marketplace.models
import marketplace.validators
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('username', models.CharField(error_messages={'unique': 'Username already taken'}, help_text='Required. 3-20 characters: letters, digits and . _ - only.', max_length=20, unique=True, validators=[marketplace.validators.username_field_validator], verbose_name='username')),
                ('email', models.EmailField(error_messages={'unique': 'Email already registered'}, help_text='Required. School email address.', max_length=254, unique=True, verbose_name='email address')),
                ('name', models.CharField(blank=True, default='', max_length=25, verbose_name='full name')),
                ('student_id', models.CharField(blank=True, default='', max_length=10, verbose_name='student ID')),
                ('contact', models.CharField(blank=True, error_messages={'unique': 'Mobile number already registered'}, max_length=13, null=True, unique=True, validators=[marketplace.validators.contact_field_validator], verbose_name='mobile number')),
                ('gender', models.CharField(blank=True, choices=[('male', 'Male'), ('female', 'Female'), ('other', 'Other')], default='', max_length=10, verbose_name='gender')),
                ('date_of_birth', models.DateField(blank=True, null=True, verbose_name='date of birth')),
                ('dob_edit_count', models.PositiveSmallIntegerField(default=0, help_text='Number of times an existing birthdate has been changed.', verbose_name='birthdate edit count')),
                ('avatar', models.ImageField(blank=True, null=True, upload_to=marketplace.models.user_avatar_upload_path, verbose_name='avatar')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('dob_edit_count__lte', 1)), name='user_dob_edited_at_most_once'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Listing',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, verbose_name='title')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('price', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'), message='Price cannot be negative.')], verbose_name='price')),
                ('category', models.CharField(max_length=50, verbose_name='category')),
                ('condition', models.CharField(blank=True, default='', max_length=50, verbose_name='condition')),
                ('location', models.CharField(blank=True, default='', max_length=200, verbose_name='location')),
                ('image_url', models.TextField(verbose_name='image URL')),
                ('is_sold', models.BooleanField(default=False, verbose_name='is sold')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('seller', models.ForeignKey(help_text='User selling this item', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='listings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'listing',
                'verbose_name_plural': 'listings',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['category'], name='listing_category_idx'),
                    models.Index(fields=['is_sold'], name='listing_is_sold_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_title', models.CharField(max_length=200, verbose_name='item title')),
                ('item_price', models.DecimalField(decimal_places=2, max_digits=10, verbose_name='item price')),
                ('item_image_url', models.TextField(blank=True, default='', verbose_name='item image URL')),
                ('confirmed_by_buyer', models.BooleanField(default=False, verbose_name='confirmed by buyer')),
                ('confirmed_by_seller', models.BooleanField(default=False, verbose_name='confirmed by seller')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20, verbose_name='status')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('buyer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchases', to=settings.AUTH_USER_MODEL)),
                ('listing', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='marketplace.listing')),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sales', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'order',
                'verbose_name_plural': 'orders',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['status'], name='order_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('buyer', models.F('seller')), _negated=True), name='order_buyer_is_not_seller'),
                    models.CheckConstraint(condition=models.Q(models.Q(('confirmed_by_buyer', True), ('confirmed_by_seller', True), ('status', 'completed')), models.Q(models.Q(('status', 'completed'), _negated=True), models.Q(('confirmed_by_buyer', True), ('confirmed_by_seller', True), _negated=True)), _connector='OR'), name='order_completed_iff_both_confirmed'),
                    models.UniqueConstraint(condition=models.Q(('status', 'pending')), fields=('buyer', 'listing'), name='unique_pending_order_per_buyer_listing'),
                ],
            },
        ),
    ]
